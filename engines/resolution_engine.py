# engines/resolution_engine.py
"""
Batch entry points.

A resolution call runs extract -> fetch -> filter -> score -> select ->
calculate for every request in the batch. Failures are isolated per
request; only an unusable business calendar aborts the batch.
"""
import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence, Set

from config import Settings
from errors import BatchTooLargeError, NoCandidateError
from models import (
    CalculationMethod,
    Entitlement,
    GroupedCandidates,
    Location,
    ScoredCandidate,
    ServiceDateResult,
    ServiceRequest,
)

from .capacity_engine import CapacityPlanningClient, CircuitBreaker
from .extraction_engine import Extraction, extract
from .field_map_engine import FieldMap, FieldMapRepository
from .priority_engine import PriorityScorer, group_candidates, select_best
from .query_engine import plan_query
from .service_date_engine import ServiceDateOrchestrator
from .timezone_engine import to_local
from .window_engine import filter_candidates

logger = logging.getLogger(__name__)


class BatchCache:
    """Lookups shared by the requests of one batch. Build one per call."""

    def __init__(self, store):
        self.store = store
        self._locations: Dict[str, Optional[Location]] = {}
        self._scheduled: Dict[str, Set[date]] = {}

    def location(self, location_id: Optional[str]) -> Optional[Location]:
        if not location_id:
            return None
        if location_id not in self._locations:
            try:
                self._locations[location_id] = self.store.fetch_location(location_id)
            except Exception:
                logger.exception("Could not load location %s", location_id)
                self._locations[location_id] = None
        return self._locations[location_id]

    def scheduled_dates(self, asset_id: str) -> Set[date]:
        if asset_id not in self._scheduled:
            self._scheduled[asset_id] = set(self.store.scheduled_dates(asset_id))
        return self._scheduled[asset_id]


class _Prepared:
    def __init__(self, field_map: FieldMap, extraction: Extraction, pool: List[Entitlement]):
        self.field_map = field_map
        self.extraction = extraction
        self.pool = pool
        self.scorer = PriorityScorer(field_map)


class EntitlementResolver:
    def __init__(self, store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or Settings()

    def _check_batch(self, requests: Sequence[ServiceRequest]) -> None:
        if len(requests) > self.settings.max_batch_size:
            raise BatchTooLargeError(len(requests), self.settings.max_batch_size)

    def _prepare(self, requests: Sequence[ServiceRequest], now: datetime) -> _Prepared:
        field_map = FieldMapRepository(self.store).load()
        extraction = extract(requests, field_map)

        query = plan_query(extraction.account_ids, extraction.min_service_date, today=now.date())
        pool = query.apply(self.store.fetch_entitlements(query.account_ids, query.not_before))
        logger.info(
            "Fetched %d entitlements for %d accounts (not before %s)",
            len(pool), len(query.account_ids), query.not_before,
        )
        return _Prepared(field_map, extraction, pool)

    def _score(self, request: ServiceRequest, prepared: _Prepared, cache: BatchCache, now: datetime) -> List[ScoredCandidate]:
        if request.id in prepared.extraction.errors:
            raise ValueError(prepared.extraction.errors[request.id])

        local_now = to_local(now, cache.location(request.location_id), self.settings.default_timezone)
        survivors = filter_candidates(prepared.pool, local_now, request.account_id)
        return prepared.scorer.score_all(survivors, prepared.extraction.fields_for(request.id))

    def _select(self, requests, prepared, cache, now):
        selected: Dict[str, Optional[Entitlement]] = {}
        errors: Dict[str, str] = {}
        for req in requests:
            try:
                best = select_best(self._score(req, prepared, cache, now))
                if best is None:
                    raise NoCandidateError(req.id)
                selected[req.id] = best.entitlement
            except NoCandidateError as e:
                logger.info("%s", e)
                selected[req.id] = None
            except Exception as e:
                logger.exception("Entitlement selection failed for request %s", req.id)
                selected[req.id] = None
                errors[req.id] = f"{type(e).__name__}: {e}"
        return selected, errors

    # ------------------------------
    # public operations
    # ------------------------------
    def resolve_entitlements(
        self,
        requests: Sequence[ServiceRequest],
        now: Optional[datetime] = None,
    ) -> Dict[str, Optional[Entitlement]]:
        """Best entitlement per request id, None when nothing qualifies."""
        self._check_batch(requests)
        now = now or datetime.now(timezone.utc)
        cache = BatchCache(self.store)

        selected, _ = self._select(requests, self._prepare(requests, now), cache, now)
        logger.info(
            "Resolved entitlements for %d requests (%d without candidate)",
            len(requests), sum(1 for v in selected.values() if v is None),
        )
        return selected

    def resolve_candidates(self, request: ServiceRequest, now: Optional[datetime] = None) -> GroupedCandidates:
        """Every surviving candidate, sorted and split into industry/customer buckets."""
        now = now or datetime.now(timezone.utc)
        cache = BatchCache(self.store)
        prepared = self._prepare([request], now)
        try:
            scored = self._score(request, prepared, cache, now)
        except Exception:
            logger.exception("Candidate lookup failed for request %s", request.id)
            scored = []
        return group_candidates(request.id, scored)

    def resolve_service_dates(
        self,
        requests: Sequence[ServiceRequest],
        now: Optional[datetime] = None,
        capacity_client: Optional[CapacityPlanningClient] = None,
    ) -> Dict[str, ServiceDateResult]:
        """
        Service date per request id. Always one result per request; the
        fallback policy covers anything that cannot be calculated.
        """
        self._check_batch(requests)
        now = now or datetime.now(timezone.utc)
        cache = BatchCache(self.store)
        calendar = self.store.fetch_business_calendar()

        orchestrator = ServiceDateOrchestrator(
            calendar,
            settings=self.settings,
            capacity_client=capacity_client,
            conflicts=cache,
            breaker=CircuitBreaker(self.settings.capacity_failure_threshold),
        )

        try:
            selected, errors = self._select(requests, self._prepare(requests, now), cache, now)
        except Exception as e:
            logger.exception("Entitlement resolution failed for the whole batch")
            note = f"{type(e).__name__}: {e}"
            selected = {r.id: None for r in requests}
            errors = {r.id: note for r in requests}

        results: Dict[str, ServiceDateResult] = {}
        for req in requests:
            location = cache.location(req.location_id)
            if req.id in errors:
                results[req.id] = orchestrator.fallback(
                    req, location, CalculationMethod.ERROR_FALLBACK, note=errors[req.id]
                )
                continue
            results[req.id] = orchestrator.calculate(req, selected.get(req.id), location)

        by_method: Dict[str, int] = {}
        for r in results.values():
            by_method[r.calculation_method.value] = by_method.get(r.calculation_method.value, 0) + 1
        logger.info("Calculated service dates for %d requests: %s", len(results), by_method)
        return results
