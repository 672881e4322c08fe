# engines/query_engine.py
from dataclasses import dataclass, field
from datetime import date
from typing import FrozenSet, Iterable, List, Optional

from models import Entitlement

APPROVED = "Approved"


@dataclass(frozen=True)
class EntitlementQuery:
    """
    Filter for currently valid, approved entitlements owned by one of the
    collected accounts or by nobody (industry standard).
    """

    account_ids: FrozenSet[str] = field(default_factory=frozenset)
    not_before: Optional[date] = None
    today: Optional[date] = None

    def matches(self, ent: Entitlement) -> bool:
        if (ent.status or "").strip().lower() != APPROVED.lower():
            return False
        if ent.account_id is not None and ent.account_id not in self.account_ids:
            return False
        if self.today is not None and ent.start_date is not None and ent.start_date > self.today:
            return False
        if self.not_before is not None and ent.end_date is not None and ent.end_date < self.not_before:
            return False
        return True

    def apply(self, entitlements: Iterable[Entitlement]) -> List[Entitlement]:
        return [e for e in entitlements if self.matches(e)]


def plan_query(account_ids: Iterable[str], not_before: Optional[date], today: Optional[date] = None) -> EntitlementQuery:
    return EntitlementQuery(
        account_ids=frozenset(a for a in account_ids if a),
        not_before=not_before,
        today=today,
    )
