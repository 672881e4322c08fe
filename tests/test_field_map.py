import logging
from datetime import date

import pytest

from engines.extraction_engine import extract, extract_fields
from engines.field_map_engine import FieldAccessor, FieldMapRepository, as_match_value, compile_rules
from errors import ConfigurationError
from models import Asset, Axis, FieldMappingRule

from conftest import RULES, FakeStore, make_request


def test_priority_code_prefix_picks_axis(field_map):
    axes = {r.priority_code: r.axis for r in field_map}
    assert axes == {"0A": Axis.CUSTOMER, "2A": Axis.SERVICE, "2B": Axis.SERVICE, "3A": Axis.TRANSACTION}

    tier_one = compile_rules([{"priority_code": "1c", "source_field": "a", "target_field": "a"}])
    tier_four = compile_rules([{"priority_code": "4A", "source_field": "a", "target_field": "a"}])
    assert next(iter(tier_one)).axis == Axis.CUSTOMER
    assert next(iter(tier_four)).axis == Axis.TRANSACTION


def test_malformed_rules_are_dropped_not_fatal(caplog):
    raw = RULES + [
        {"priority_code": "9Z", "source_field": "case_type", "target_field": "case_type"},
        {"priority_code": "XYZ", "source_field": "case_type", "target_field": "case_type"},
        {"priority_code": "2C", "source_field": "a.b.c.d.e", "target_field": "x"},
        {"priority_code": "2D", "source_field": "", "target_field": "x"},
    ]
    with caplog.at_level(logging.WARNING):
        fm = compile_rules(raw)

    assert len(fm) == len(RULES)
    assert caplog.text.count("Skipping field mapping rule") == 4


def test_rules_are_ordered_by_priority_code():
    fm = compile_rules(list(reversed(RULES)))
    assert [r.priority_code for r in fm] == ["0A", "2A", "2B", "3A"]


def test_repository_loads_from_store():
    fm = FieldMapRepository(FakeStore()).load()
    assert len(fm) == 4


def test_repository_accepts_rows_and_rule_objects():
    rules = [RULES[0], FieldMappingRule(**RULES[1])]
    fm = FieldMapRepository(FakeStore(rules=rules)).load()
    assert len(fm) == 2


def test_accessor_walks_models_and_dicts():
    req = make_request(asset=Asset(id="A", product_family="Rolloff"), site={"region": {"code": "NE"}})

    assert FieldAccessor("asset.product_family")(req) == "Rolloff"
    assert FieldAccessor("site.region.code")(req) == "NE"


def test_accessor_null_relationship_is_absence():
    req = make_request(asset=None)
    assert FieldAccessor("asset.product_family")(req) is None


def test_accessor_unknown_segment_raises():
    with pytest.raises(ConfigurationError):
        FieldAccessor("nope")(make_request())


def test_accessor_rejects_deep_paths():
    FieldAccessor("a.b.c.d")  # three hops is fine
    with pytest.raises(ConfigurationError):
        FieldAccessor("a.b.c.d.e")


def test_match_value_normalisation():
    assert as_match_value(None) is None
    assert as_match_value("   ") is None
    assert as_match_value(" Pickup ") == "Pickup"
    assert as_match_value(True) == "true"
    assert as_match_value(3) == "3"


def test_extraction_one_field_per_rule(field_map):
    fields = extract_fields(make_request(), field_map)

    assert [f.priority_code for f in fields] == ["0A", "2A", "2B", "3A"]
    by_target = {f.target_field: f.value for f in fields}
    assert by_target["account_id"] == "ACC-1"
    assert by_target["case_type"] == "Pickup"
    assert by_target["product_family"] is None   # no asset: explicit absence


def test_unresolvable_source_path_is_logged_and_absent(caplog):
    fm = compile_rules([{"priority_code": "2A", "source_field": "material", "target_field": "material"}])
    with caplog.at_level(logging.WARNING):
        fields = extract_fields(make_request(), fm)

    assert fields[0].value is None
    assert "Unresolvable path" in caplog.text


def test_extraction_collects_query_scope(field_map):
    reqs = [
        make_request(id="C1", account_id="ACC-1"),
        make_request(id="C2", account_id="ACC-2", service_date=date(2024, 12, 1)),
        make_request(id="C3", account_id=None),
    ]
    result = extract(reqs, field_map)

    assert result.account_ids == {"ACC-1", "ACC-2"}
    assert result.min_service_date == date(2024, 12, 1)
    assert set(result.fields) == {"C1", "C2", "C3"}
    assert result.errors == {}
