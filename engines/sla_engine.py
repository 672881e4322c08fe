# engines/sla_engine.py
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from config import DEFAULT_CUTOFF_HOUR
from errors import CalculationError
from models import Entitlement, GuaranteeUnit, Location

from .calendar_engine import BusinessCalendar, adjust_to_business_day
from .timezone_engine import location_tz, to_local

END_OF_DAY = time(23, 59, 59)


@dataclass(frozen=True)
class SlaDate:
    days_delta: int
    raw_timestamp: datetime   # UTC
    raw_date: date            # local calendar date


def days_delta(unit, value) -> int:
    if value is None:
        raise CalculationError("Entitlement has no guarantee value")
    unit = GuaranteeUnit(unit)
    if unit == GuaranteeUnit.DAYS:
        return math.floor(value)
    return math.floor(value / 24)


def is_usable(ent: Optional[Entitlement]) -> bool:
    return ent is not None and ent.guarantee_unit is not None and ent.guarantee_value is not None


def cutoff_days(ent: Entitlement, local_created: datetime, cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> int:
    # an explicit cutoff was already enforced when filtering
    if ent.has_cutoff:
        return 0
    return 1 if local_created.hour >= cutoff_hour else 0


def compute_sla(
    created_at: datetime,
    ent: Entitlement,
    location: Optional[Location] = None,
    default_tz: str = "UTC",
    cutoff_hour: int = DEFAULT_CUTOFF_HOUR,
) -> SlaDate:
    local_created = to_local(created_at, location, default_tz)

    delta = days_delta(ent.guarantee_unit, ent.guarantee_value)
    delta += cutoff_days(ent, local_created, cutoff_hour)

    return SlaDate(
        days_delta=delta,
        raw_timestamp=created_at + timedelta(days=delta),
        raw_date=(local_created + timedelta(days=delta)).date(),
    )


def shift_to(sla: SlaDate, service_date: date) -> datetime:
    """SLA timestamp moved by however many days the service date moved."""
    return sla.raw_timestamp + timedelta(days=(service_date - sla.raw_date).days)


def fallback_sla(
    created_at: datetime,
    calendar: BusinessCalendar,
    location: Optional[Location] = None,
    default_tz: str = "UTC",
):
    """
    Tomorrow, moved to a business day regardless of any override, due at
    23:59:59 local. Calendar failures propagate.
    """
    tomorrow = (to_local(created_at, location, default_tz) + timedelta(days=1)).date()
    service_date = adjust_to_business_day(tomorrow, calendar, override=False)
    sla_timestamp = datetime.combine(service_date, END_OF_DAY, tzinfo=location_tz(location, default_tz))
    return service_date, sla_timestamp
