# store.py
"""
File-backed data access: one JSON document holding the field mappings,
entitlements, locations, business calendar and scheduled work.

    {
      "field_mappings": [{"priority_code": "0A", "source_field": "account_id", ...}],
      "entitlements":   [{"id": "ENT-1", "guarantee_unit": "Days", ...}],
      "locations":      [{"id": "LOC-1", "timezone_id": "America/Chicago"}],
      "calendar":       {"business_days": ["Monday", ...], "holidays": ["2024-12-25"]},
      "scheduled_work": [{"asset_id": "A-1", "service_date": "2024-12-15"}]
    }
"""
import json
import logging
import os
from datetime import date
from typing import Iterable, List, Optional, Protocol, Set, Union

from pydantic import ValidationError

from engines.calendar_engine import BusinessCalendar, WeeklyCalendar
from engines.query_engine import plan_query
from models import Entitlement, FieldMappingRule, Location

logger = logging.getLogger(__name__)

SECTIONS = ("field_mappings", "entitlements", "locations", "calendar", "scheduled_work")


class EntitlementStore(Protocol):
    def fetch_entitlements(self, account_ids: Set[str], not_before: Optional[date]) -> List[Entitlement]: ...
    def fetch_field_mapping_rules(self) -> List[Union[dict, FieldMappingRule]]: ...
    def fetch_business_calendar(self) -> BusinessCalendar: ...
    def fetch_location(self, location_id: str) -> Optional[Location]: ...
    def scheduled_dates(self, asset_id: str) -> Set[date]: ...


def empty_document() -> dict:
    return {
        "field_mappings": [],
        "entitlements": [],
        "locations": [],
        "calendar": {},
        "scheduled_work": [],
    }


def load_store(path: str) -> dict:
    if not os.path.exists(path):
        return empty_document()
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    doc = empty_document()
    doc.update({k: v for k, v in data.items() if k in SECTIONS})
    return doc


def save_store(path: str, data: dict) -> None:
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False, default=str)


class JsonStore:
    def __init__(self, path: str):
        self.path = path
        self.data = load_store(path)

    # ------------------------------
    # reads
    # ------------------------------
    def _entitlements(self) -> List[Entitlement]:
        out = []
        for raw in self.data["entitlements"]:
            try:
                out.append(Entitlement.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping invalid entitlement %r: %s", raw.get("id"), e)
        return out

    def fetch_entitlements(self, account_ids: Iterable[str], not_before: Optional[date]) -> List[Entitlement]:
        query = plan_query(account_ids, not_before)
        return query.apply(self._entitlements())

    def fetch_field_mapping_rules(self) -> List[dict]:
        # validated by the field map engine, which logs bad rules
        return list(self.data["field_mappings"])

    def fetch_business_calendar(self) -> WeeklyCalendar:
        return WeeklyCalendar.from_dict(self.data["calendar"])

    def fetch_location(self, location_id: str) -> Optional[Location]:
        for raw in self.data["locations"]:
            if raw.get("id") == location_id:
                return Location.model_validate(raw)
        return None

    def scheduled_dates(self, asset_id: str) -> Set[date]:
        return {
            date.fromisoformat(str(w["service_date"]))
            for w in self.data["scheduled_work"]
            if w.get("asset_id") == asset_id and w.get("service_date")
        }

    # ------------------------------
    # writes
    # ------------------------------
    def save_entitlements(self, entitlements: Iterable[Entitlement]) -> int:
        """Upsert by id and persist. Returns the number written."""
        by_id = {e.get("id"): e for e in self.data["entitlements"]}
        count = 0
        for ent in entitlements:
            by_id[ent.id] = ent.model_dump(mode="json")
            count += 1
        self.data["entitlements"] = list(by_id.values())
        save_store(self.path, self.data)
        return count
