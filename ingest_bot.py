# ingest_bot.py
import logging
import os
import shutil
from datetime import datetime
from typing import Any, Optional

import pandas as pd
from apscheduler.schedulers.background import BackgroundScheduler
from pydantic import ValidationError

from config import Settings, load_settings
from models import Entitlement
from store import JsonStore

logger = logging.getLogger(__name__)

SHEET_SUFFIXES = (".xlsx", ".xls", ".csv")

# normalised header -> Entitlement field
COLUMN_MAP = {
    "id": "id",
    "entitlement id": "id",
    "entitlement": "id",
    "name": "name",
    "entitlement name": "name",
    "account": "account_id",
    "account id": "account_id",
    "start date": "start_date",
    "end date": "end_date",
    "status": "status",
    "approval status": "status",
    "unit": "guarantee_unit",
    "guarantee unit": "guarantee_unit",
    "value": "guarantee_value",
    "guarantee value": "guarantee_value",
    "cutoff time": "cutoff_time",
    "cut off time": "cutoff_time",
    "cutoff": "cutoff_direction",
    "cutoff direction": "cutoff_direction",
    "days": "weekdays",
    "weekdays": "weekdays",
    "days of week": "weekdays",
    "override business hours": "override_business_hours",
    "gold standard": "gold_standard",
    "contractual": "contractual",
}

BOOL_FIELDS = ("override_business_hours", "gold_standard", "contractual")
TRUE_WORDS = {"true", "yes", "y", "1", "x"}


def normalize_header(col: Any) -> str:
    if not isinstance(col, str):
        col = str(col)
    c = col.replace("\xa0", " ").replace("_", " ").strip().lower()
    return COLUMN_MAP.get(c, c.replace(" ", "_"))


def clean_value(x: Any) -> Any:
    """pandas cell -> plain python value, blanks become None."""
    if x is None:
        return None
    try:
        if pd.isna(x):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(x, pd.Timestamp):
        return x.date()
    if hasattr(x, "item"):
        x = x.item()
    if isinstance(x, str):
        x = x.strip()
        return x or None
    if isinstance(x, float) and x.is_integer():
        return int(x)
    return x


def safe_to_bool(x: Any) -> bool:
    x = clean_value(x)
    if x is None:
        return False
    if isinstance(x, bool):
        return x
    return str(x).strip().lower() in TRUE_WORDS


def read_sheet(filepath: str) -> pd.DataFrame:
    if filepath.lower().endswith(".csv"):
        return pd.read_csv(filepath)
    return pd.read_excel(filepath, engine="openpyxl")


def row_to_entitlement(row: dict) -> Optional[Entitlement]:
    record = {}
    for key, raw in row.items():
        record[key] = safe_to_bool(raw) if key in BOOL_FIELDS else clean_value(raw)

    if not record.get("id"):
        return None
    record["id"] = str(record["id"])
    if record.get("account_id") is not None:
        record["account_id"] = str(record["account_id"])
    if not record.get("status"):
        record["status"] = "Approved"
    return Entitlement.model_validate(record)


def process_sheet(filepath: str, store: JsonStore) -> bool:
    logger.info("Processing entitlement sheet %s", filepath)
    try:
        df = read_sheet(filepath)
    except Exception:
        logger.exception("Failed to read %s", filepath)
        return False

    df.columns = [normalize_header(c) for c in df.columns]
    if "id" not in df.columns:
        logger.error("Sheet %s has no entitlement id column", filepath)
        return False

    entitlements = []
    for idx, row in enumerate(df.to_dict(orient="records")):
        try:
            ent = row_to_entitlement(row)
        except ValidationError as e:
            logger.warning("Row %d of %s rejected: %s", idx + 1, os.path.basename(filepath), e)
            continue
        if ent is None:
            logger.warning("Row %d of %s has no id; skipped", idx + 1, os.path.basename(filepath))
            continue
        entitlements.append(ent)

    written = store.save_entitlements(entitlements)
    logger.info("Ingested %d of %d rows from %s", written, len(df), os.path.basename(filepath))
    return True


def ingest_job(settings: Settings, store: JsonStore) -> int:
    """Process every sheet in the incoming folder; returns how many were moved."""
    os.makedirs(settings.incoming_dir, exist_ok=True)
    os.makedirs(settings.processed_dir, exist_ok=True)

    files = sorted(
        f for f in os.listdir(settings.incoming_dir)
        if f.lower().endswith(SHEET_SUFFIXES) and not f.startswith("~$")
    )

    moved = 0
    for fn in files:
        full = os.path.join(settings.incoming_dir, fn)
        if not process_sheet(full, store):
            continue
        dest_name = f"{datetime.now().strftime('%Y%m%d%H%M%S')}__{fn}"
        shutil.move(full, os.path.join(settings.processed_dir, dest_name))
        logger.info("Moved %s -> %s", fn, dest_name)
        moved += 1
    return moved


def start_ingest_bot(settings: Settings, store: JsonStore) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        ingest_job,
        "interval",
        seconds=settings.ingest_interval_seconds,
        args=[settings, store],
        next_run_time=datetime.now(),
        max_instances=1,
    )
    scheduler.start()
    logger.info(
        "Entitlement ingest started (every %ss). Folder: %s",
        settings.ingest_interval_seconds, os.path.abspath(settings.incoming_dir),
    )
    return scheduler


# manual run
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    cfg = load_settings()
    ingest_job(cfg, JsonStore(cfg.store_file))
