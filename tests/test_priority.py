from itertools import product

from engines.extraction_engine import extract_fields
from engines.priority_engine import (
    PriorityScorer,
    field_matches,
    group_candidates,
    priority_rank,
    select_best,
    sort_candidates,
)
from models import Asset, Entitlement, ScoredCandidate

from conftest import make_entitlement, make_request


def _ent(id_="E"):
    return Entitlement(id=id_)


def test_rank_table():
    table = {
        (True, True, True): 0,
        (True, True, False): 1,
        (True, False, True): 2,
        (True, False, False): 3,
        (False, True, True): 4,
        (False, True, False): 5,
        (False, False, True): 6,
        (False, False, False): 7,
    }
    for hits, rank in table.items():
        assert priority_rank(*hits) == rank


def test_rank_is_monotonic_in_axis_hits():
    combos = list(product([False, True], repeat=3))
    for a, b in product(combos, combos):
        a_set = {i for i, hit in enumerate(a) if hit}
        b_set = {i for i, hit in enumerate(b) if hit}
        if a_set > b_set:
            assert priority_rank(*a) <= priority_rank(*b)


def test_field_matching_rules():
    assert field_matches("Pickup", "Pickup")
    assert field_matches("pickup", "PICKUP")
    assert field_matches(None, "Pickup")          # wildcard
    assert not field_matches("Delivery", "Pickup")
    assert not field_matches(None, None)
    assert not field_matches("Pickup", None)


def test_full_match_beats_customer_only(field_map):
    # A: customer + service + transaction, B: customer only
    req = make_request(asset=Asset(id="A1", product_family="Rolloff"))
    a = make_entitlement(id="A", account_id="ACC-1", case_type="Pickup", case_sub_type="Extra Pickup")
    b = make_entitlement(
        id="B", account_id="ACC-1", case_type="Delivery",
        product_family="Commercial", case_sub_type="Other",
    )
    scorer = PriorityScorer(field_map)
    fields = extract_fields(req, field_map)

    scored = scorer.score_all([b, a], fields)
    by_id = {c.entitlement.id: c for c in scored}
    assert by_id["A"].priority_rank == 0
    assert by_id["B"].priority_rank == 3
    assert by_id["B"].customer_score == 1 and by_id["B"].service_score == 0

    assert select_best(scored).entitlement.id == "A"


def test_all_null_entitlement_against_absent_values_ranks_seven(field_map):
    req = make_request(account_id=None, case_type=None, case_sub_type=None)
    scored = PriorityScorer(field_map).score(make_entitlement(), extract_fields(req, field_map))

    assert scored.priority_rank == 7
    assert (scored.customer_score, scored.service_score, scored.transaction_score) == (0, 0, 0)


def test_no_match_is_still_a_candidate(field_map):
    req = make_request()
    ent = make_entitlement(account_id="ACC-9", case_type="Delivery", case_sub_type="Other",
                           product_family="Commercial")
    scored = PriorityScorer(field_map).score(ent, extract_fields(req, field_map))

    assert scored.priority_rank == 7
    assert select_best([scored]) is scored


def test_sort_breaks_ties_by_scores_descending():
    c1 = ScoredCandidate(entitlement=_ent("1"), customer_score=1, service_score=1, transaction_score=1, priority_rank=0)
    c2 = ScoredCandidate(entitlement=_ent("2"), customer_score=2, service_score=1, transaction_score=1, priority_rank=0)
    c3 = ScoredCandidate(entitlement=_ent("3"), customer_score=2, service_score=2, transaction_score=0, priority_rank=0)
    c4 = ScoredCandidate(entitlement=_ent("4"), customer_score=2, service_score=2, transaction_score=3, priority_rank=0)
    c5 = ScoredCandidate(entitlement=_ent("5"), customer_score=9, service_score=9, transaction_score=9, priority_rank=1)

    ordered = sort_candidates([c5, c1, c2, c3, c4])
    assert [c.entitlement.id for c in ordered] == ["4", "3", "2", "1", "5"]


def test_full_tie_prefers_customer_entitlement():
    industry = ScoredCandidate(entitlement=_ent("IND"), customer_score=1, priority_rank=3)
    own = ScoredCandidate(entitlement=Entitlement(id="OWN", account_id="ACC-1"), customer_score=1, priority_rank=3)
    assert select_best([industry, own]).entitlement.id == "OWN"


def test_select_best_of_nothing_is_none():
    assert select_best([]) is None


def test_grouping_splits_industry_and_customer(field_map):
    req = make_request()
    industry = make_entitlement(id="IND")
    customer = make_entitlement(id="CUS", account_id="ACC-1", case_type="Pickup")
    scored = PriorityScorer(field_map).score_all([industry, customer], extract_fields(req, field_map))

    grouped = group_candidates(req.id, scored)
    assert [c.entitlement.id for c in grouped.industry] == ["IND"]
    assert [c.entitlement.id for c in grouped.customer] == ["CUS"]


def test_scoring_is_deterministic(field_map):
    req = make_request()
    ents = [make_entitlement(id=str(i), case_type="Pickup" if i % 2 else None) for i in range(6)]
    scorer = PriorityScorer(field_map)
    fields = extract_fields(req, field_map)

    first = [c.entitlement.id for c in sort_candidates(scorer.score_all(ents, fields))]
    second = [c.entitlement.id for c in sort_candidates(scorer.score_all(ents, fields))]
    assert first == second
