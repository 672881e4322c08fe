# engines/extraction_engine.py
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from errors import ConfigurationError
from models import MatchableField, ServiceRequest

from .field_map_engine import FieldMap

logger = logging.getLogger(__name__)


class Extraction:
    def __init__(self):
        self.fields: Dict[str, List[MatchableField]] = {}
        self.account_ids: Set[str] = set()
        self.min_service_date: Optional[date] = None
        # request id -> reason extraction failed
        self.errors: Dict[str, str] = {}

    def fields_for(self, request_id: str) -> List[MatchableField]:
        return self.fields.get(request_id, [])


def extract_fields(request: ServiceRequest, field_map: FieldMap) -> List[MatchableField]:
    out = []
    for rule in field_map:
        try:
            value = rule.source(request)
        except ConfigurationError as e:
            logger.warning("Request %s: %s; treating %s as absent", request.id, e, rule.target_field)
            value = None
        out.append(
            MatchableField(
                request_id=request.id,
                priority_code=rule.priority_code,
                target_field=rule.target_field,
                value=value,
            )
        )
    return out


def extract(requests: Iterable[ServiceRequest], field_map: FieldMap) -> Extraction:
    """
    Flatten every request into matchable fields and collect the query scope
    (distinct account ids, earliest service date).
    """
    result = Extraction()
    for req in requests:
        try:
            result.fields[req.id] = extract_fields(req, field_map)
        except Exception as e:
            logger.exception("Field extraction failed for request %s", req.id)
            result.errors[req.id] = f"{type(e).__name__}: {e}"
            continue

        if req.account_id:
            result.account_ids.add(req.account_id)

        svc_date = req.earliest_service_date
        if result.min_service_date is None or svc_date < result.min_service_date:
            result.min_service_date = svc_date

    return result
