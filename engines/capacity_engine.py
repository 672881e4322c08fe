# engines/capacity_engine.py
"""
Capacity planner client.

GET {base_url}/servicelines/{site_id}/capacity?serviceDate=YYYY-MM-DD

The planner answers with JSON holding one or more "AvailableDates" lists of
YYYY/MM/DD strings, possibly nested inside other objects. Every failure
(timeout, non-200, bad JSON) comes back as a CapacityLookup with ok=False
and no dates; nothing here raises to the caller, and nothing retries.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional, Set

import requests

from errors import ExternalServiceError
from models import CapacityLookup

from .calendar_engine import BusinessCalendar, next_business_day

logger = logging.getLogger(__name__)

AVAILABLE_DATES_KEY = "AvailableDates"
PLANNER_DATE_FORMAT = "%Y/%m/%d"
OUTPUT_DATE_FORMAT = "%m/%d/%Y"


def format_capacity_date(d: date) -> str:
    return d.strftime(OUTPUT_DATE_FORMAT)


def _collect_date_strings(node: Any, out: List[str]) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            if key == AVAILABLE_DATES_KEY:
                if isinstance(value, list):
                    out.extend(v for v in value if isinstance(v, str))
                elif isinstance(value, str):
                    out.append(value)
            else:
                _collect_date_strings(value, out)
    elif isinstance(node, list):
        for item in node:
            _collect_date_strings(item, out)


def parse_available_dates(body: Any) -> List[date]:
    """Sorted, de-duplicated available dates from a planner response body."""
    raw: List[str] = []
    _collect_date_strings(body, raw)

    dates = set()
    for s in raw:
        try:
            dates.add(datetime.strptime(s.strip(), PLANNER_DATE_FORMAT).date())
        except ValueError:
            logger.warning("Ignoring malformed capacity date %r", s)
    return sorted(dates)


class CapacityPlanningClient:
    def __init__(
        self,
        base_url: str,
        token: str = "",
        partner_key: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.token = token
        self.partner_key = partner_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, session=None) -> Optional["CapacityPlanningClient"]:
        if not settings.capacity_enabled:
            return None
        return cls(
            settings.capacity_base_url,
            token=settings.capacity_token,
            partner_key=settings.capacity_partner_key,
            timeout=settings.capacity_timeout_seconds,
            session=session,
        )

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.partner_key:
            headers["x-partner-key"] = self.partner_key
        return headers

    def _get(self, site_id: str, service_date: date) -> Any:
        url = f"{self.base_url}/servicelines/{site_id}/capacity"
        try:
            resp = self.session.get(
                url,
                params={"serviceDate": service_date.isoformat()},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise ExternalServiceError(f"Capacity planner timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise ExternalServiceError(f"Capacity planner unreachable: {e}") from e

        if resp.status_code != 200:
            raise ExternalServiceError(f"Capacity planner returned HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise ExternalServiceError("Capacity planner returned a malformed body") from e

    def lookup(self, site_id: str, service_date: date) -> CapacityLookup:
        try:
            body = self._get(site_id, service_date)
        except ExternalServiceError as e:
            logger.warning("Capacity lookup failed site=%s date=%s: %s", site_id, service_date, e)
            return CapacityLookup(ok=False, error=str(e))

        dates = parse_available_dates(body)
        logger.info("Capacity lookup site=%s date=%s -> %d dates", site_id, service_date, len(dates))
        return CapacityLookup(ok=True, dates=dates)


class CircuitBreaker:
    """Stops capacity lookups for the rest of a run after N consecutive failures."""

    def __init__(self, threshold: int = 3):
        self.threshold = threshold
        self.failures = 0

    @property
    def is_open(self) -> bool:
        return self.failures >= self.threshold

    def record(self, ok: bool) -> None:
        if ok:
            self.failures = 0
            return
        self.failures += 1
        if self.failures == self.threshold:
            logger.warning("Capacity planner circuit opened after %d consecutive failures", self.failures)


def choose_capacity_date(
    available: Iterable[date],
    conflicts: Set[date],
    calendar: BusinessCalendar,
) -> date:
    """
    Earliest available date not already booked. When every date is booked,
    the first business day after the latest available date.
    """
    ordered = sorted(set(available))
    if not ordered:
        raise ValueError("No available dates to choose from")
    for d in ordered:
        if d not in conflicts:
            return d
    candidate = next_business_day(ordered[-1] + timedelta(days=1), calendar)
    while candidate in conflicts:
        candidate = next_business_day(candidate + timedelta(days=1), calendar)
    return candidate
