from datetime import date, datetime, timezone

import pytest

from config import Settings
from engines.calendar_engine import WeeklyCalendar
from engines.field_map_engine import compile_rules
from engines.query_engine import plan_query
from models import Asset, Entitlement, Location, ServiceRequest

# 2024-12-16 is a Monday; 2024-12-25 (Wednesday) is a holiday
MONDAY = date(2024, 12, 16)
CHRISTMAS = date(2024, 12, 25)


RULES = [
    {"priority_code": "0A", "label": "Account", "source_field": "account_id", "target_field": "account_id"},
    {"priority_code": "2A", "label": "Case Type", "source_field": "case_type", "target_field": "case_type"},
    {"priority_code": "2B", "label": "Product Family", "source_field": "asset.product_family", "target_field": "product_family"},
    {"priority_code": "3A", "label": "Sub Type", "source_field": "case_sub_type", "target_field": "case_sub_type"},
]


def make_request(**kw) -> ServiceRequest:
    data = {
        "id": "CASE-1",
        "account_id": "ACC-1",
        "location_id": None,
        "case_type": "Pickup",
        "case_sub_type": "Extra Pickup",
        "created_at": datetime(2024, 12, 16, 10, 0, tzinfo=timezone.utc),
    }
    data.update(kw)
    return ServiceRequest(**data)


def make_entitlement(**kw) -> Entitlement:
    data = {
        "id": "ENT-1",
        "account_id": None,
        "start_date": date(2020, 1, 1),
        "guarantee_unit": "Days",
        "guarantee_value": 2,
    }
    data.update(kw)
    return Entitlement(**data)


class FakeStore:
    """In-memory data access double."""

    def __init__(self, entitlements=(), rules=RULES, locations=(), calendar=None, scheduled=None):
        self.entitlements = list(entitlements)
        self.rules = list(rules)
        self.locations = {loc.id: loc for loc in locations}
        self.calendar = calendar or WeeklyCalendar(holidays=[CHRISTMAS])
        self.scheduled = scheduled or {}
        self.fetch_calls = []

    def fetch_entitlements(self, account_ids, not_before):
        self.fetch_calls.append((set(account_ids), not_before))
        return plan_query(account_ids, not_before).apply(self.entitlements)

    def fetch_field_mapping_rules(self):
        return list(self.rules)

    def fetch_business_calendar(self):
        return self.calendar

    def fetch_location(self, location_id):
        return self.locations.get(location_id)

    def scheduled_dates(self, asset_id):
        return set(self.scheduled.get(asset_id, ()))


@pytest.fixture
def field_map():
    return compile_rules(RULES)


@pytest.fixture
def calendar():
    return WeeklyCalendar(holidays=[CHRISTMAS])


@pytest.fixture
def settings():
    return Settings(capacity_vendors=["VEND-WM"], capacity_failure_threshold=2)


@pytest.fixture
def chicago():
    return Location(id="LOC-CHI", timezone_id="America/Chicago")


@pytest.fixture
def rolloff_asset():
    return Asset(id="AST-1", product_family="Rolloff", vendor_id="VEND-WM", capacity_site_id="SB-100")
