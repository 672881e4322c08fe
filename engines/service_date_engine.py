# engines/service_date_engine.py
import logging
from datetime import date
from typing import Optional, Protocol, Set

from config import Settings
from models import Asset, CalculationMethod, Entitlement, Location, ServiceDateResult, ServiceRequest

from .calendar_engine import BusinessCalendar, adjust_to_business_day
from .capacity_engine import (
    CapacityPlanningClient,
    CircuitBreaker,
    choose_capacity_date,
    format_capacity_date,
)
from .sla_engine import compute_sla, fallback_sla, is_usable, shift_to

logger = logging.getLogger(__name__)

COMMERCIAL_FAMILY = "Commercial"


class ConflictProvider(Protocol):
    def scheduled_dates(self, asset_id: str) -> Set[date]: ...


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().casefold() == b.strip().casefold()


def uses_entitlement_only(ent: Entitlement, asset: Optional[Asset]) -> bool:
    family = asset.product_family if asset else None
    return ent.gold_standard or ent.contractual or _same(family, COMMERCIAL_FAMILY)


def is_capacity_managed(asset: Optional[Asset], settings: Settings) -> bool:
    if asset is None:
        return False
    if not _same(asset.product_family, settings.capacity_product_family):
        return False
    return any(_same(asset.vendor_id, v) for v in settings.capacity_vendors)


def resolve_site_id(asset: Optional[Asset], location: Optional[Location]) -> Optional[str]:
    if asset is not None and asset.capacity_site_id:
        return asset.capacity_site_id
    if location is not None and location.capacity_site_id:
        return location.capacity_site_id
    return None


def is_capacity_eligible(
    ent: Optional[Entitlement],
    asset: Optional[Asset],
    settings: Settings,
) -> bool:
    """
    Whether the capacity planner applies to this request at all. A missing
    site id does not change the answer; the orchestrator reports it as
    "Fallback - No SBID".
    """
    if ent is not None and uses_entitlement_only(ent, asset):
        return False
    return is_capacity_managed(asset, settings)


class ServiceDateOrchestrator:
    """
    Picks how a request's service date is calculated:

      1. gold-standard / contractual entitlement or Commercial asset
         -> entitlement calculation
      2. capacity-managed asset with a site id -> capacity planner,
         falling back to the entitlement calculation
      3. anything else -> entitlement calculation

    Any error in 1-3 applies the fallback policy for that request only.
    """

    def __init__(
        self,
        calendar: BusinessCalendar,
        settings: Optional[Settings] = None,
        capacity_client: Optional[CapacityPlanningClient] = None,
        conflicts: Optional[ConflictProvider] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.calendar = calendar
        self.settings = settings or Settings()
        self.capacity_client = capacity_client
        self.conflicts = conflicts
        self.breaker = breaker or CircuitBreaker(self.settings.capacity_failure_threshold)

    # ------------------------------
    # calculation paths
    # ------------------------------
    def _by_entitlement(self, request, ent, location, method, note=None) -> ServiceDateResult:
        sla = compute_sla(
            request.created_at,
            ent,
            location,
            self.settings.default_timezone,
            self.settings.default_cutoff_hour,
        )
        service_date = adjust_to_business_day(sla.raw_date, self.calendar, ent.override_business_hours)
        return ServiceDateResult(
            request_id=request.id,
            service_date=service_date,
            sla_timestamp=shift_to(sla, service_date),
            calculation_method=method,
            entitlement_id=ent.id,
            error_note=note,
        )

    def _by_capacity(self, request, ent, asset, location) -> ServiceDateResult:
        site_id = resolve_site_id(asset, location)
        if site_id is None:
            return self._by_entitlement(
                request, ent, location, CalculationMethod.FALLBACK_NO_SBID,
                note="No capacity site id for asset",
            )
        if self.capacity_client is None:
            return self._by_entitlement(
                request, ent, location, CalculationMethod.FALLBACK_ENTITLEMENT,
                note="Capacity planner not configured",
            )
        if self.breaker.is_open:
            return self._by_entitlement(
                request, ent, location, CalculationMethod.FALLBACK_ENTITLEMENT,
                note="Capacity planner circuit open",
            )

        baseline = self._by_entitlement(request, ent, location, CalculationMethod.ENTITLEMENT)
        lookup = self.capacity_client.lookup(site_id, baseline.service_date)
        self.breaker.record(lookup.ok)

        if not lookup.ok:
            return baseline.model_copy(update={
                "calculation_method": CalculationMethod.FALLBACK_ENTITLEMENT,
                "error_note": lookup.error,
            })
        if not lookup.dates:
            return baseline.model_copy(update={
                "calculation_method": CalculationMethod.FALLBACK_NO_DATES,
                "error_note": "Capacity planner returned no dates",
            })

        booked = set()
        if self.conflicts is not None and asset.id:
            booked = set(self.conflicts.scheduled_dates(asset.id))

        chosen = choose_capacity_date(lookup.dates, booked, self.calendar)
        return baseline.model_copy(update={
            "service_date": chosen,
            "calculation_method": CalculationMethod.CAPACITY_PLANNER,
            "available_dates_considered": [format_capacity_date(d) for d in lookup.dates],
        })

    def fallback(self, request, location, method, ent_id=None, note=None) -> ServiceDateResult:
        service_date, sla_timestamp = fallback_sla(
            request.created_at, self.calendar, location, self.settings.default_timezone
        )
        return ServiceDateResult(
            request_id=request.id,
            service_date=service_date,
            sla_timestamp=sla_timestamp,
            calculation_method=method,
            entitlement_id=ent_id,
            error_note=note,
        )

    # ------------------------------
    # entry point
    # ------------------------------
    def calculate(
        self,
        request: ServiceRequest,
        entitlement: Optional[Entitlement],
        location: Optional[Location] = None,
        asset: Optional[Asset] = None,
    ) -> ServiceDateResult:
        asset = asset if asset is not None else request.asset

        if not is_usable(entitlement):
            note = "No entitlement selected" if entitlement is None else "Entitlement has no guarantee"
            return self.fallback(
                request, location, CalculationMethod.FALLBACK_NO_ENTITLEMENT,
                ent_id=entitlement.id if entitlement else None, note=note,
            )

        try:
            if uses_entitlement_only(entitlement, asset):
                return self._by_entitlement(request, entitlement, location, CalculationMethod.ENTITLEMENT)
            if is_capacity_eligible(entitlement, asset, self.settings):
                return self._by_capacity(request, entitlement, asset, location)
            return self._by_entitlement(request, entitlement, location, CalculationMethod.DEFAULT_ENTITLEMENT)
        except Exception as e:
            logger.exception("Service date calculation failed for request %s", request.id)
            return self.fallback(
                request, location, CalculationMethod.ERROR_FALLBACK,
                ent_id=entitlement.id, note=f"{type(e).__name__}: {e}",
            )
