from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable

from pydantic import ValidationError as PydanticValidationError

from scorecard.constants import (
    DEFAULT_ACTIVE_FROM,
    DEFAULT_METRIC_DEFINITIONS,
    FALLBACK_AGGREGATION,
    FALLBACK_TYPE,
    LEGACY_AGGREGATION_TOKENS,
    LEGACY_TYPE_TOKENS,
    METRIC_DEFINITIONS_VERSION,
)
from scorecard.dates import parse_iso_date, utc_now_iso
from scorecard.errors import NotFoundError, StorageCorruption, ValidationError
from scorecard.models import Aggregation, MetricDefinition, MetricType

logger = logging.getLogger(__name__)

_TYPE_VALUES = {item.value for item in MetricType}
_AGGREGATION_VALUES = {item.value for item in Aggregation}


def _normalize_token(value) -> str:
    if isinstance(value, (MetricType, Aggregation)):
        return value.value
    return str(value or "").strip().lower()


def _normalize_options(raw_options):
    if not isinstance(raw_options, list):
        return None
    options = []
    for item in raw_options:
        if isinstance(item, dict):
            value = str(item.get("value") if item.get("value") is not None else "").strip()
            label = str(item.get("label") or value).strip()
        else:
            value = str(item or "").strip()
            label = value
        if value:
            options.append({"value": value, "label": label})
    return options


def normalize_definition_payload(raw: dict) -> dict:
    """Map a stored or imported row onto the current vocabulary.

    Legacy type and aggregation tokens are remapped; a type that is still
    unknown degrades to short text so old rows stay readable.
    """
    payload = dict(raw)

    type_token = _normalize_token(payload.get("type"))
    type_token = LEGACY_TYPE_TOKENS.get(type_token, type_token)
    if type_token not in _TYPE_VALUES:
        type_token = FALLBACK_TYPE
    payload["type"] = type_token

    aggregation = _normalize_token(payload.get("aggregation"))
    aggregation = LEGACY_AGGREGATION_TOKENS.get(aggregation, aggregation)
    if aggregation not in _AGGREGATION_VALUES:
        aggregation = FALLBACK_AGGREGATION
    payload["aggregation"] = aggregation

    payload["metric_id"] = str(payload.get("metric_id") or "").strip()
    payload["label"] = str(payload.get("label") or payload["metric_id"])
    payload["active_from"] = payload.get("active_from") or DEFAULT_ACTIVE_FROM
    payload["active_to"] = payload.get("active_to") or None
    payload["options"] = _normalize_options(payload.get("options"))
    if not isinstance(payload.get("input_attrs"), dict):
        payload["input_attrs"] = {}
    return payload


def normalize_definition(raw) -> MetricDefinition:
    if isinstance(raw, MetricDefinition):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError(f"Metric definition must be an object, got {type(raw).__name__}")
    try:
        return MetricDefinition.model_validate(normalize_definition_payload(raw))
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid metric definition: {exc.errors()[0].get('msg')}",
            metric_id=raw.get("metric_id"),
        ) from exc


class MetricCatalog:
    """Immutable collection of metric version rows.

    Mutations return a new catalog; the caller decides when to persist it.
    """

    def __init__(self, definitions: Iterable[MetricDefinition] = ()):
        self._definitions = tuple(definitions)

    @classmethod
    def from_defaults(cls) -> "MetricCatalog":
        return cls(normalize_definition(item) for item in DEFAULT_METRIC_DEFINITIONS)

    @classmethod
    def from_payload(cls, rows) -> "MetricCatalog":
        return cls(normalize_definition(item) for item in rows)

    @property
    def definitions(self) -> tuple[MetricDefinition, ...]:
        return self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self):
        return iter(self._definitions)

    def __eq__(self, other) -> bool:
        if not isinstance(other, MetricCatalog):
            return NotImplemented
        return self._definitions == other._definitions

    def metric_ids(self) -> list[str]:
        return sorted({definition.metric_id for definition in self._definitions})

    def versions(self, metric_id: str) -> list[MetricDefinition]:
        rows = [definition for definition in self._definitions if definition.metric_id == metric_id]
        return sorted(rows, key=lambda definition: definition.active_from)

    def _resolve_index(self, metric_id: str, day) -> int | None:
        best = None
        for index, definition in enumerate(self._definitions):
            if definition.metric_id != metric_id or not definition.is_active_on(day):
                continue
            # Later rows win ties on active_from.
            if best is None or definition.active_from >= self._definitions[best].active_from:
                best = index
        return best

    def resolve_definition(self, metric_id: str, day) -> MetricDefinition | None:
        day = parse_iso_date(day)
        index = self._resolve_index(metric_id, day)
        return None if index is None else self._definitions[index]

    def resolve_active_definitions(self, day) -> list[MetricDefinition]:
        day = parse_iso_date(day)
        resolved = {}
        for definition in self._definitions:
            if definition.metric_id in resolved:
                continue
            match = self.resolve_definition(definition.metric_id, day)
            if match is not None:
                resolved[definition.metric_id] = match
        return sorted(resolved.values(), key=lambda definition: (definition.group, definition.metric_id))

    def append_version(self, definition, effective_from, today) -> "MetricCatalog":
        definition = normalize_definition(definition)
        effective_from = parse_iso_date(effective_from)
        today = parse_iso_date(today)
        metric_id = definition.metric_id
        if effective_from < today:
            raise ValidationError(
                f"Changes to {metric_id} can only take effect from {today.isoformat()} onward.",
                metric_id=metric_id,
            )

        for existing in self._definitions:
            if existing.metric_id != metric_id or existing.active_from <= effective_from:
                continue
            if existing.active_to is not None and existing.active_to < existing.active_from:
                continue
            raise ValidationError(
                f"A version of {metric_id} is already scheduled from {existing.active_from.isoformat()}.",
                metric_id=metric_id,
            )

        closing_day = effective_from - timedelta(days=1)
        rows = []
        for existing in self._definitions:
            covers = existing.active_to is None or existing.active_to >= effective_from
            if existing.metric_id == metric_id and existing.active_from <= effective_from and covers:
                existing = existing.model_copy(update={"active_to": closing_day})
            rows.append(existing)
        rows.append(definition.model_copy(update={"active_from": effective_from, "active_to": None}))
        logger.info("Appended %s version effective %s", metric_id, effective_from.isoformat())
        return MetricCatalog(rows)

    def retire(self, metric_id: str, retire_from, today) -> "MetricCatalog":
        retire_from = parse_iso_date(retire_from)
        today = parse_iso_date(today)
        if retire_from < today:
            raise ValidationError(
                f"{metric_id} can only be retired from {today.isoformat()} onward.",
                metric_id=metric_id,
            )

        target = None
        for index, existing in enumerate(self._definitions):
            if existing.metric_id == metric_id and existing.is_open and existing.active_from <= retire_from:
                target = index
        if target is None:
            raise NotFoundError(f"No open version of {metric_id} on {retire_from.isoformat()}.")

        rows = list(self._definitions)
        rows[target] = rows[target].model_copy(update={"active_to": retire_from})
        logger.info("Retired %s after %s", metric_id, retire_from.isoformat())
        return MetricCatalog(rows)

    def snapshot_for_date_range(self, start, end) -> list[MetricDefinition]:
        start = parse_iso_date(start)
        end = parse_iso_date(end)
        unique = {}
        for definition in self._definitions:
            if definition.intersects(start, end):
                unique[(definition.metric_id, definition.active_from)] = definition
        return [unique[key] for key in sorted(unique)]

    def merge_unknown_metrics(self, rows) -> tuple["MetricCatalog", int]:
        known = {definition.metric_id for definition in self._definitions}
        added = []
        for raw in rows or []:
            definition = normalize_definition(raw)
            if definition.metric_id in known:
                continue
            added.append(definition)
        if not added:
            return self, 0
        return MetricCatalog([*self._definitions, *added]), len(added)

    def to_blob(self, updated_at: str | None = None) -> dict:
        return {
            "version": METRIC_DEFINITIONS_VERSION,
            "definitions": [definition.to_payload() for definition in self._definitions],
            "updated_at": updated_at or utc_now_iso(),
        }


def catalog_from_blob(blob) -> tuple[MetricCatalog, bool]:
    """Decode a persisted catalog blob; the flag reports a normalizing rewrite."""
    if not isinstance(blob, dict) or not isinstance(blob.get("definitions"), list):
        raise StorageCorruption("Metric catalog blob is not a {version, definitions} object")
    try:
        version = int(blob.get("version") or 1)
    except (TypeError, ValueError) as exc:
        raise StorageCorruption(f"Metric catalog version is not an integer: {blob.get('version')!r}") from exc
    if version > METRIC_DEFINITIONS_VERSION:
        raise StorageCorruption(f"Metric catalog version {version} is newer than this build supports")
    try:
        catalog = MetricCatalog.from_payload(blob["definitions"])
    except ValidationError as exc:
        raise StorageCorruption(f"Metric catalog row is unreadable: {exc.message}") from exc

    rewritten = [definition.to_payload() for definition in catalog]
    changed = version != METRIC_DEFINITIONS_VERSION or rewritten != blob["definitions"]
    return catalog, changed
