# engines/calendar_engine.py
import logging
from datetime import date, timedelta
from typing import Iterable, Optional, Protocol

from errors import BusinessCalendarError
from models import WEEKDAYS

logger = logging.getLogger(__name__)

# a calendar with no business day at all would never converge
MAX_ADJUST_DAYS = 366


class BusinessCalendar(Protocol):
    def is_business_day(self, day: date) -> bool: ...


class WeeklyCalendar:
    """Business days by weekday name, minus listed holidays."""

    def __init__(
        self,
        business_days: Iterable[str] = WEEKDAYS[:5],
        holidays: Iterable[date] = (),
    ):
        self.business_days = frozenset(d.capitalize() for d in business_days)
        self.holidays = frozenset(holidays)

    def is_business_day(self, day: date) -> bool:
        if day in self.holidays:
            return False
        return WEEKDAYS[day.weekday()] in self.business_days

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "WeeklyCalendar":
        data = data or {}
        days = data.get("business_days") or WEEKDAYS[:5]
        holidays = [date.fromisoformat(str(h)) for h in data.get("holidays", [])]
        return cls(days, holidays)


def next_business_day(day: date, calendar: BusinessCalendar) -> date:
    """Move forward until the calendar reports a business day. Never moves back."""
    current = day
    for _ in range(MAX_ADJUST_DAYS):
        try:
            open_ = calendar.is_business_day(current)
        except Exception as e:
            raise BusinessCalendarError(f"Business calendar failed for {current}: {e}") from e
        if open_:
            return current
        current += timedelta(days=1)

    raise BusinessCalendarError(f"No business day within {MAX_ADJUST_DAYS} days of {day}")


def adjust_to_business_day(day: date, calendar: BusinessCalendar, override: bool = False) -> date:
    if override:
        return day
    adjusted = next_business_day(day, calendar)
    if adjusted != day:
        logger.debug("Moved %s to business day %s", day, adjusted)
    return adjusted
