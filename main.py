# main.py
import logging
from datetime import date
from typing import Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from config import Settings, load_settings
from engines.capacity_engine import CapacityPlanningClient, format_capacity_date
from engines.override_engine import requires_override, validate_service_date_override
from engines.resolution_engine import EntitlementResolver
from engines.service_date_engine import is_capacity_eligible, resolve_site_id
from errors import BatchTooLargeError, BusinessCalendarError, ServiceDateOverrideError
from ingest_bot import start_ingest_bot
from models import (
    CandidateQuery,
    CapacityEligibilityCheck,
    Entitlement,
    GroupedCandidates,
    OverrideCheck,
    ResolveBatch,
    ServiceDateResult,
)
from store import JsonStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store=None,
    capacity_client: Optional[CapacityPlanningClient] = None,
    start_bots: bool = True,
) -> FastAPI:
    settings = settings or load_settings()
    store = store if store is not None else JsonStore(settings.store_file)
    if capacity_client is None:
        capacity_client = CapacityPlanningClient.from_settings(settings)
    resolver = EntitlementResolver(store, settings)

    app = FastAPI(title="Entitlement SLA Engine API")
    app.state.settings = settings
    app.state.resolver = resolver
    app.state.capacity_client = capacity_client
    app.state.scheduler = None

    # ---- error mapping ----
    @app.exception_handler(BusinessCalendarError)
    def calendar_unavailable(request: Request, exc: BusinessCalendarError):
        logger.error("Business calendar unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(ServiceDateOverrideError)
    def override_missing(request: Request, exc: ServiceDateOverrideError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(BatchTooLargeError)
    def batch_too_large(request: Request, exc: BatchTooLargeError):
        return JSONResponse(status_code=413, content={"detail": str(exc)})

    # ---- routes ----
    @app.get("/health")
    def health():
        return {"status": "ok", "capacity_planner": capacity_client is not None}

    @app.post("/entitlements/resolve", response_model=Dict[str, Optional[Entitlement]])
    def resolve_entitlements(batch: ResolveBatch):
        return resolver.resolve_entitlements(batch.requests, now=batch.now)

    @app.post("/entitlements/candidates", response_model=GroupedCandidates)
    def entitlement_candidates(query: CandidateQuery):
        return resolver.resolve_candidates(query.request, now=query.now)

    @app.post("/service_dates", response_model=Dict[str, ServiceDateResult])
    def service_dates(batch: ResolveBatch):
        return resolver.resolve_service_dates(
            batch.requests, now=batch.now, capacity_client=capacity_client
        )

    @app.post("/service_dates/validate_override")
    def validate_override(check: OverrideCheck):
        today = check.today or date.today()
        validate_service_date_override(
            check.service_date,
            check.sla_date,
            today,
            check.override_reason,
            check.override_comment,
        )
        return {
            "valid": True,
            "override_required": requires_override(check.service_date, check.sla_date, today),
        }

    @app.post("/service_dates/capacity_eligible")
    def capacity_eligible(check: CapacityEligibilityCheck):
        location = store.fetch_location(check.location_id) if check.location_id else None
        return {
            "eligible": is_capacity_eligible(check.entitlement, check.asset, settings),
            "site_id": resolve_site_id(check.asset, location),
        }

    @app.get("/capacity/{site_id}")
    def capacity(site_id: str, service_date: date = Query(...)):
        if capacity_client is None:
            return JSONResponse(status_code=404, content={"detail": "Capacity planner not configured"})
        lookup = capacity_client.lookup(site_id, service_date)
        return {
            "ok": lookup.ok,
            "dates": [format_capacity_date(d) for d in lookup.dates],
            "error": lookup.error,
        }

    # ---- background ingest ----
    @app.on_event("startup")
    def on_start():
        if start_bots:
            app.state.scheduler = start_ingest_bot(settings, store)
        logger.info("Entitlement SLA engine running (store: %s)", settings.store_file)

    @app.on_event("shutdown")
    def on_stop():
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)

    return app


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
