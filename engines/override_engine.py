# engines/override_engine.py
from datetime import date
from typing import Optional

from errors import ServiceDateOverrideError

OVERRIDE_REQUIRED_MESSAGE = "Please fill SLA Override Reason and SLA Override Comment"


def requires_override(service_date: date, sla_date: date, today: date) -> bool:
    """A date earlier than the SLA date, but not in the past, needs justification."""
    return today <= service_date < sla_date


def validate_service_date_override(
    service_date: date,
    sla_date: date,
    today: date,
    override_reason: Optional[str] = None,
    override_comment: Optional[str] = None,
) -> bool:
    """
    Returns True when the manual date is acceptable as given.
    Raises ServiceDateOverrideError when reason or comment is missing.
    """
    if not requires_override(service_date, sla_date, today):
        return True
    if not (override_reason or "").strip() or not (override_comment or "").strip():
        raise ServiceDateOverrideError(OVERRIDE_REQUIRED_MESSAGE)
    return True
