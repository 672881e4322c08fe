# config.py
import os
from typing import List

from pydantic import BaseModel, Field

# ------------------------------
# Defaults
# ------------------------------
STORE_FILE = "static/store.json"
INCOMING_DIR = "incoming"
PROCESSED_DIR = "processed"

DEFAULT_CUTOFF_HOUR = 14   # 2 PM local
MAX_BATCH_SIZE = 200


class Settings(BaseModel):
    store_file: str = STORE_FILE
    incoming_dir: str = INCOMING_DIR
    processed_dir: str = PROCESSED_DIR
    ingest_interval_seconds: int = Field(30, ge=1)

    default_timezone: str = "UTC"
    default_cutoff_hour: int = Field(DEFAULT_CUTOFF_HOUR, ge=0, le=23)
    max_batch_size: int = Field(MAX_BATCH_SIZE, ge=1)

    # Capacity planner (disabled while base_url is empty)
    capacity_base_url: str = ""
    capacity_token: str = ""
    capacity_partner_key: str = ""
    capacity_timeout_seconds: float = Field(10.0, gt=0)
    capacity_failure_threshold: int = Field(3, ge=1)
    capacity_product_family: str = "Rolloff"
    capacity_vendors: List[str] = Field(default_factory=list)

    @property
    def capacity_enabled(self) -> bool:
        return bool(self.capacity_base_url)


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def load_settings(env=None) -> Settings:
    """Build Settings from SLA_* environment variables; unset keys keep defaults."""
    env = os.environ if env is None else env

    values = {}
    plain = {
        "SLA_STORE_FILE": "store_file",
        "SLA_INCOMING_DIR": "incoming_dir",
        "SLA_PROCESSED_DIR": "processed_dir",
        "SLA_INGEST_INTERVAL_SECONDS": "ingest_interval_seconds",
        "SLA_DEFAULT_TIMEZONE": "default_timezone",
        "SLA_DEFAULT_CUTOFF_HOUR": "default_cutoff_hour",
        "SLA_MAX_BATCH_SIZE": "max_batch_size",
        "SLA_CAPACITY_BASE_URL": "capacity_base_url",
        "SLA_CAPACITY_TOKEN": "capacity_token",
        "SLA_CAPACITY_PARTNER_KEY": "capacity_partner_key",
        "SLA_CAPACITY_TIMEOUT_SECONDS": "capacity_timeout_seconds",
        "SLA_CAPACITY_FAILURE_THRESHOLD": "capacity_failure_threshold",
        "SLA_CAPACITY_PRODUCT_FAMILY": "capacity_product_family",
    }
    for var, field in plain.items():
        raw = env.get(var)
        if raw is not None and raw.strip() != "":
            values[field] = raw.strip()

    vendors = env.get("SLA_CAPACITY_VENDORS")
    if vendors:
        values["capacity_vendors"] = _split(vendors)

    return Settings(**values)
