# engines/timezone_engine.py
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models import Location

logger = logging.getLogger(__name__)


def _zone(name: str) -> Optional[tzinfo]:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone id %r", name)
        return None


def location_tz(location: Optional[Location], default_tz: str = "UTC") -> tzinfo:
    """
    Timezone of a location. A named zone wins over the static offset,
    which cannot follow daylight-saving changes.
    """
    if location is not None:
        if location.timezone_id:
            tz = _zone(location.timezone_id)
            if tz is not None:
                return tz
        if location.utc_offset_hours is not None:
            return timezone(timedelta(hours=location.utc_offset_hours))

    return _zone(default_tz) or timezone.utc


def to_local(ts: datetime, location: Optional[Location], default_tz: str = "UTC") -> datetime:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(location_tz(location, default_tz))
