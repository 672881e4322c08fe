# engines/priority_engine.py
from typing import Dict, Iterable, List, Optional

from errors import ConfigurationError
from models import Axis, Entitlement, GroupedCandidates, MatchableField, ScoredCandidate

from .field_map_engine import FieldAccessor, FieldMap, as_match_value


def priority_rank(customer_hit: bool, service_hit: bool, transaction_hit: bool) -> int:
    """
    0 = matched on all three axes, 7 = matched on none.
    Customer outweighs service, service outweighs transaction.
    """
    rank = 0
    if not customer_hit:
        rank += 4
    if not service_hit:
        rank += 2
    if not transaction_hit:
        rank += 1
    return rank


def field_matches(entitlement_value: Optional[str], request_value: Optional[str]) -> bool:
    if request_value is None:
        return False
    if entitlement_value is None:
        return True     # wildcard
    return entitlement_value.casefold() == request_value.casefold()


class PriorityScorer:
    def __init__(self, field_map: FieldMap):
        self.field_map = field_map
        self._accessors: Dict[str, FieldAccessor] = {}

    def _entitlement_value(self, ent: Entitlement, mf: MatchableField) -> Optional[str]:
        rule = self.field_map.rule_for(mf.priority_code, mf.target_field)
        accessor = rule.target if rule else self._accessors.get(mf.target_field)
        if accessor is None:
            accessor = self._accessors[mf.target_field] = FieldAccessor(mf.target_field)
        try:
            return accessor(ent)
        except ConfigurationError:
            # criterion not set on this entitlement
            return None

    def score(self, ent: Entitlement, fields: Iterable[MatchableField]) -> ScoredCandidate:
        scores = {Axis.CUSTOMER: 0, Axis.SERVICE: 0, Axis.TRANSACTION: 0}

        for mf in fields:
            axis = mf.axis
            if axis is None:
                continue
            if field_matches(self._entitlement_value(ent, mf), as_match_value(mf.value)):
                scores[axis] += 1

        return ScoredCandidate(
            entitlement=ent,
            customer_score=scores[Axis.CUSTOMER],
            service_score=scores[Axis.SERVICE],
            transaction_score=scores[Axis.TRANSACTION],
            priority_rank=priority_rank(
                scores[Axis.CUSTOMER] > 0,
                scores[Axis.SERVICE] > 0,
                scores[Axis.TRANSACTION] > 0,
            ),
        )

    def score_all(self, entitlements: Iterable[Entitlement], fields: List[MatchableField]) -> List[ScoredCandidate]:
        return [self.score(e, fields) for e in entitlements]


def candidate_order(c: ScoredCandidate):
    # rank, then scores descending; on a full tie an account's own entitlement beats the industry one
    return (
        c.priority_rank,
        -c.customer_score,
        -c.service_score,
        -c.transaction_score,
        c.entitlement.is_industry_standard,
    )


def sort_candidates(candidates: Iterable[ScoredCandidate]) -> List[ScoredCandidate]:
    # stable: equal keys keep fetch order
    return sorted(candidates, key=candidate_order)


def select_best(candidates: Iterable[ScoredCandidate]) -> Optional[ScoredCandidate]:
    ordered = sort_candidates(candidates)
    return ordered[0] if ordered else None


def group_candidates(request_id: str, candidates: Iterable[ScoredCandidate]) -> GroupedCandidates:
    ordered = sort_candidates(candidates)
    return GroupedCandidates(
        request_id=request_id,
        industry=[c for c in ordered if c.entitlement.is_industry_standard],
        customer=[c for c in ordered if not c.entitlement.is_industry_standard],
    )
