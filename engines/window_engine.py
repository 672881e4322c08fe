# engines/window_engine.py
from datetime import datetime
from typing import Iterable, List, Optional

from models import WEEKDAYS, CutoffDirection, Entitlement


def in_weekday_window(ent: Entitlement, local_now: datetime) -> bool:
    if not ent.weekdays:
        return True
    return WEEKDAYS[local_now.weekday()] in ent.weekdays


def in_cutoff_window(ent: Entitlement, local_now: datetime) -> bool:
    # no explicit cutoff => not time filtered
    if not ent.has_cutoff:
        return True

    hour = local_now.hour
    cutoff_hour = ent.cutoff_time.hour
    if ent.cutoff_direction == CutoffDirection.BEFORE and hour >= cutoff_hour:
        return False
    if ent.cutoff_direction == CutoffDirection.AFTER and hour < cutoff_hour:
        return False
    return True


def in_account_scope(ent: Entitlement, account_id: Optional[str]) -> bool:
    return ent.account_id is None or ent.account_id == account_id


def filter_candidates(
    entitlements: Iterable[Entitlement],
    local_now: datetime,
    account_id: Optional[str],
) -> List[Entitlement]:
    """
    Drop entitlements whose weekday set, cutoff window or account scope
    excludes this request at local_now (evaluation-timezone wall clock).
    """
    return [
        e for e in entitlements
        if in_weekday_window(e, local_now)
        and in_cutoff_window(e, local_now)
        and in_account_scope(e, account_id)
    ]
