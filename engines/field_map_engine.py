# engines/field_map_engine.py
import logging
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from errors import ConfigurationError
from models import Axis, FieldMappingRule

logger = logging.getLogger(__name__)

MAX_RELATIONSHIP_HOPS = 3


def as_match_value(value: Any) -> Optional[str]:
    """String form used for matching. None and blank strings are absence."""
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    s = str(value).strip()
    return s or None


class FieldAccessor:
    """
    Dot-path reader compiled once per path, e.g. "asset.product_family".

    A None anywhere along the path is absence. A segment that does not
    exist on the object raises ConfigurationError.
    """

    def __init__(self, path: str):
        segments = [s.strip() for s in (path or "").split(".")]
        if not segments or any(not s for s in segments):
            raise ConfigurationError(f"Malformed field path: {path!r}")
        if len(segments) - 1 > MAX_RELATIONSHIP_HOPS:
            raise ConfigurationError(
                f"Field path {path!r} exceeds {MAX_RELATIONSHIP_HOPS} relationship hops"
            )
        self.path = path
        self.segments = tuple(segments)

    def raw(self, obj: Any) -> Any:
        current = obj
        for seg in self.segments:
            if current is None:
                return None
            if isinstance(current, dict):
                if seg not in current:
                    raise ConfigurationError(f"Unresolvable path {self.path!r} at {seg!r}")
                current = current[seg]
                continue
            try:
                current = getattr(current, seg)
            except AttributeError:
                raise ConfigurationError(f"Unresolvable path {self.path!r} at {seg!r}") from None
        return current

    def __call__(self, obj: Any) -> Optional[str]:
        return as_match_value(self.raw(obj))

    def __repr__(self):
        return f"FieldAccessor({self.path!r})"


class CompiledRule:
    __slots__ = ("rule", "axis", "source", "target")

    def __init__(self, rule: FieldMappingRule):
        axis = rule.axis
        if axis is None:
            raise ConfigurationError(
                f"Priority code {rule.priority_code!r} does not map to a scoring axis"
            )
        self.rule = rule
        self.axis: Axis = axis
        self.source = FieldAccessor(rule.source_field)
        self.target = FieldAccessor(rule.target_field)

    @property
    def priority_code(self) -> str:
        return self.rule.priority_code

    @property
    def target_field(self) -> str:
        return self.rule.target_field


class FieldMap:
    """Ordered, compiled rule set for one resolution call."""

    def __init__(self, rules: Iterable[CompiledRule]):
        self.rules: List[CompiledRule] = sorted(rules, key=lambda r: r.priority_code)
        self._by_code = {}
        for r in self.rules:
            self._by_code.setdefault((r.priority_code, r.target_field), r)

    def __len__(self):
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def rule_for(self, priority_code: str, target_field: str) -> Optional[CompiledRule]:
        return self._by_code.get((priority_code, target_field))


def compile_rules(raw_rules: Iterable[Any]) -> FieldMap:
    """
    Validate and compile mapping rules. A malformed rule is logged and
    dropped; the remaining rules still apply.
    """
    compiled = []
    for raw in raw_rules:
        try:
            rule = raw if isinstance(raw, FieldMappingRule) else FieldMappingRule.model_validate(raw)
            compiled.append(CompiledRule(rule))
        except (ValidationError, ConfigurationError) as e:
            logger.warning("Skipping field mapping rule %r: %s", raw, e)
    return FieldMap(compiled)


class FieldMapRepository:
    def __init__(self, store):
        self.store = store

    def load(self) -> FieldMap:
        field_map = compile_rules(self.store.fetch_field_mapping_rules())
        if not len(field_map):
            logger.warning("No usable field mapping rules; every candidate will rank 7")
        return field_map
