from datetime import date, datetime, time, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class GuaranteeUnit(str, Enum):
    DAYS = "Days"
    HOURS = "Hours"


class CutoffDirection(str, Enum):
    BEFORE = "Before"
    AFTER = "After"


class Axis(str, Enum):
    CUSTOMER = "customer"
    SERVICE = "service"
    TRANSACTION = "transaction"


# leading digit of a priority code -> scoring axis
AXIS_BY_TIER = {
    "0": Axis.CUSTOMER,
    "1": Axis.CUSTOMER,
    "2": Axis.SERVICE,
    "3": Axis.TRANSACTION,
    "4": Axis.TRANSACTION,
}


class CalculationMethod(str, Enum):
    ENTITLEMENT = "Entitlement"
    CAPACITY_PLANNER = "Capacity Planner"
    DEFAULT_ENTITLEMENT = "Default - Entitlement"
    FALLBACK_ENTITLEMENT = "Fallback - Entitlement"
    FALLBACK_NO_DATES = "Fallback - No Dates"
    FALLBACK_NO_SBID = "Fallback - No SBID"
    FALLBACK_NO_ENTITLEMENT = "Fallback - No Entitlement"
    ERROR_FALLBACK = "Error - Fallback"


def _as_utc(value: datetime) -> datetime:
    # naive timestamps are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================
# REFERENCE RECORDS (read-only snapshots)
# ============================================================
class Asset(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    product_family: Optional[str] = Field(None, examples=["Rolloff"])
    vendor_id: Optional[str] = Field(None, examples=["VEND_001"])

    # capacity planner site identifier (SBID)
    capacity_site_id: Optional[str] = None


class Location(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    utc_offset_hours: Optional[float] = Field(None, ge=-14, le=14)
    timezone_id: Optional[str] = Field(None, examples=["America/Chicago"])
    capacity_site_id: Optional[str] = None


# ============================================================
# INPUT MODEL (caller -> resolution engines)
# ============================================================
class ServiceRequest(BaseModel):
    """Inbound case or quote. Unknown attributes are kept so mapped paths can reach them."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., examples=["CASE_0001"])
    account_id: Optional[str] = Field(None, examples=["ACC_123"])
    location_id: Optional[str] = Field(None, examples=["LOC_9"])

    case_type: Optional[str] = Field(None, examples=["Pickup"])
    case_sub_type: Optional[str] = Field(None, examples=["Extra Pickup"])
    case_reason: Optional[str] = None

    asset_id: Optional[str] = None
    asset: Optional[Asset] = None

    created_at: datetime
    # requested service date; creation date is used when absent
    service_date: Optional[date] = None

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def earliest_service_date(self) -> date:
        return self.service_date or self.created_at.date()


# ============================================================
# CONFIGURATION ENTITIES
# ============================================================
class FieldMappingRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority_code: str = Field(..., pattern=r"^[0-9][A-Z0-9]$", examples=["0A"])
    label: str = ""
    source_field: str = Field(..., min_length=1, examples=["asset.product_family"])
    target_field: str = Field(..., min_length=1, examples=["product_family"])

    @field_validator("priority_code", mode="before")
    @classmethod
    def _normalise_code(cls, v):
        return str(v).strip().upper() if v is not None else v

    @property
    def axis(self) -> Optional[Axis]:
        return AXIS_BY_TIER.get(self.priority_code[0])


class Entitlement(BaseModel):
    """
    A candidate SLA contract.

    Match criteria named by FieldMappingRule.target_field are stored as
    extra attributes (None means "any value").
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    account_id: Optional[str] = None   # None => industry standard

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = "Approved"

    guarantee_unit: Optional[GuaranteeUnit] = None
    guarantee_value: Optional[float] = Field(None, ge=0)

    cutoff_time: Optional[time] = None
    cutoff_direction: Optional[CutoffDirection] = None
    weekdays: List[str] = Field(default_factory=list)

    override_business_hours: bool = False
    gold_standard: bool = False
    contractual: bool = False

    @field_validator("guarantee_unit", "cutoff_direction", mode="before")
    @classmethod
    def _capitalize(cls, v):
        if isinstance(v, str):
            return v.strip().capitalize() or None
        return v

    @field_validator("weekdays", mode="before")
    @classmethod
    def _split_weekdays(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.replace(",", ";").split(";")
        out = []
        for day in v:
            name = str(day).strip().capitalize()
            if not name:
                continue
            match = [w for w in WEEKDAYS if w.startswith(name[:3])]
            if len(match) != 1:
                raise ValueError(f"Unknown or ambiguous weekday: {day}")
            out.append(match[0])
        return out

    @property
    def is_industry_standard(self) -> bool:
        return self.account_id is None

    @property
    def has_cutoff(self) -> bool:
        return self.cutoff_time is not None and self.cutoff_direction is not None


# ============================================================
# TRANSIENT RESOLUTION VALUES
# ============================================================
class MatchableField(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_id: str
    priority_code: str
    target_field: str
    value: Optional[str] = None   # None = absent, never ""

    @property
    def axis(self) -> Optional[Axis]:
        return AXIS_BY_TIER.get(self.priority_code[0])


class ScoredCandidate(BaseModel):
    entitlement: Entitlement
    customer_score: int = 0
    service_score: int = 0
    transaction_score: int = 0
    priority_rank: int = Field(7, ge=0, le=7)


class GroupedCandidates(BaseModel):
    request_id: str
    industry: List[ScoredCandidate] = Field(default_factory=list)
    customer: List[ScoredCandidate] = Field(default_factory=list)


class CapacityLookup(BaseModel):
    """Result of one capacity planner call. Never raised, always returned."""

    ok: bool
    dates: List[date] = Field(default_factory=list)
    error: Optional[str] = None


# ============================================================
# OUTPUT MODEL (resolution engines -> caller)
# ============================================================
class ServiceDateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_id: str
    service_date: date
    sla_timestamp: datetime
    calculation_method: CalculationMethod
    entitlement_id: Optional[str] = None

    # MM/DD/YYYY, as returned by the capacity planner
    available_dates_considered: Optional[List[str]] = None
    error_note: Optional[str] = None


# ============================================================
# API PAYLOADS
# ============================================================
class ResolveBatch(BaseModel):
    requests: List[ServiceRequest]
    now: Optional[datetime] = None


class CandidateQuery(BaseModel):
    request: ServiceRequest
    now: Optional[datetime] = None


class OverrideCheck(BaseModel):
    service_date: date
    sla_date: date
    today: Optional[date] = None
    override_reason: Optional[str] = None
    override_comment: Optional[str] = None


class CapacityEligibilityCheck(BaseModel):
    asset: Optional[Asset] = None
    entitlement: Optional[Entitlement] = None
    location_id: Optional[str] = None
