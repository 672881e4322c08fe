from datetime import date

import pytest

from config import load_settings
from engines.override_engine import requires_override, validate_service_date_override
from errors import ServiceDateOverrideError


def test_settings_defaults():
    s = load_settings({})
    assert s.default_cutoff_hour == 14
    assert s.max_batch_size == 200
    assert not s.capacity_enabled
    assert s.capacity_product_family == "Rolloff"


def test_settings_from_env():
    s = load_settings({
        "SLA_DEFAULT_CUTOFF_HOUR": "15",
        "SLA_CAPACITY_BASE_URL": "https://planner",
        "SLA_CAPACITY_TIMEOUT_SECONDS": "2.5",
        "SLA_CAPACITY_VENDORS": "V1, V2,,",
        "SLA_STORE_FILE": "  ",
    })
    assert s.default_cutoff_hour == 15
    assert s.capacity_enabled
    assert s.capacity_timeout_seconds == 2.5
    assert s.capacity_vendors == ["V1", "V2"]
    assert s.store_file == "static/store.json"


def test_bad_setting_is_rejected():
    with pytest.raises(ValueError):
        load_settings({"SLA_DEFAULT_CUTOFF_HOUR": "25"})


TODAY = date(2024, 12, 16)


def test_override_needed_only_for_earlier_future_dates():
    sla = date(2024, 12, 18)
    assert requires_override(date(2024, 12, 17), sla, TODAY)
    assert requires_override(TODAY, sla, TODAY)
    assert not requires_override(sla, sla, TODAY)
    assert not requires_override(date(2024, 12, 20), sla, TODAY)
    assert not requires_override(date(2024, 12, 15), sla, TODAY)


def test_override_requires_reason_and_comment():
    sla = date(2024, 12, 18)
    assert validate_service_date_override(date(2024, 12, 20), sla, TODAY)
    assert validate_service_date_override(date(2024, 12, 17), sla, TODAY, "Customer", "Asked")

    for reason, comment in ((None, "c"), ("r", ""), ("  ", "c")):
        with pytest.raises(ServiceDateOverrideError):
            validate_service_date_override(date(2024, 12, 17), sla, TODAY, reason, comment)
