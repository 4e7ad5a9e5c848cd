from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from pydantic import ValidationError as PydanticValidationError

from scorecard.catalog import MetricCatalog, normalize_definition, normalize_definition_payload
from scorecard.codec import empty_value, parse_value
from scorecard.constants import (
    CURRENT_SCHEMA_VERSIONS,
    DEFAULT_METRIC_DEFINITIONS,
    LEGACY_DAY_FIELD_PATHS,
    METRIC_DEFINITIONS_VERSION,
    MIGRATION_MARKER,
    OLDEST_LEGACY_SCHEMA_VERSIONS,
    SCHEMA_FAMILY,
    SCHEMA_SCOPES,
    SUPPORTED_SCHEMA_VERSIONS,
    WEEK_STRUCTURE_FLAGS,
)
from scorecard.dates import parse_iso_date, utc_now_iso, week_monday_for
from scorecard.days import DAY_SCHEMA, put_day, set_week_structure
from scorecard.errors import ParseError, SchemaError, StorageCorruption, ValidationError
from scorecard.models import DayEntry, StoreState, WeekRecord, WeekStructure

logger = logging.getLogger(__name__)

SCHEMA_TAG_RE = re.compile(r"^(?P<family>[A-Za-z0-9_]+)\.(?P<scope>[A-Za-z0-9_]+)\.v(?P<version>\d+)$")

_DEFAULT_DEFINITIONS_BY_ID = {
    item["metric_id"]: normalize_definition(item) for item in DEFAULT_METRIC_DEFINITIONS
}


@dataclass(frozen=True)
class SchemaTag:
    family: str
    scope: str
    version: int

    def __str__(self) -> str:
        return f"{self.family}.{self.scope}.v{self.version}"

    @property
    def is_legacy(self) -> bool:
        return self.version <= OLDEST_LEGACY_SCHEMA_VERSIONS[self.scope]


def parse_schema_tag(raw, expected_scope: str | None = None) -> SchemaTag:
    match = SCHEMA_TAG_RE.match(str(raw or "").strip())
    if not match:
        raise SchemaError(f"Schema not recognized: {raw!r}")
    tag = SchemaTag(match.group("family"), match.group("scope"), int(match.group("version")))
    if tag.family != SCHEMA_FAMILY:
        raise SchemaError(f"Schema family not recognized: {tag.family!r}")
    if tag.scope not in SCHEMA_SCOPES:
        raise SchemaError(f"Schema scope not recognized: {tag.scope!r}")
    if expected_scope and tag.scope != expected_scope:
        raise SchemaError(f"Expected a {expected_scope} payload, got {tag}")
    if tag.version > SUPPORTED_SCHEMA_VERSIONS[tag.scope]:
        raise SchemaError(
            f"Refusing future schema {tag}: this build reads {tag.scope} payloads up to "
            f"v{SUPPORTED_SCHEMA_VERSIONS[tag.scope]}"
        )
    return tag


class _DecodeMismatch(Exception):
    pass


def _day_of(raw: dict):
    day = raw.get("day")
    iso_date = day.get("iso_date") if isinstance(day, dict) else None
    if not iso_date:
        raise ParseError("Day payload is missing day.iso_date")
    try:
        return parse_iso_date(iso_date)
    except ValidationError as exc:
        raise ParseError(exc.message) from exc


def _snapshot_rows(raw: dict, catalog: MetricCatalog, day) -> list:
    rows = raw.get("metric_definitions")
    if rows is None:
        return [definition.to_payload() for definition in catalog.resolve_active_definitions(day)]
    if not isinstance(rows, list):
        raise ParseError("metric_definitions must be a list")
    return [normalize_definition_payload(row) if isinstance(row, dict) else row for row in rows]


def _coerce_metrics(metrics: dict, catalog: MetricCatalog, day) -> dict:
    # Values are stored as the definition in force on that day would parse them.
    coerced = {}
    for metric_id, value in metrics.items():
        definition = catalog.resolve_definition(metric_id, day)
        coerced[metric_id] = value if definition is None else parse_value(definition, value)
    return coerced


def _current_shape(raw: dict, catalog: MetricCatalog, day, metrics: dict, extra_meta: dict) -> dict:
    meta = dict(raw.get("meta") or {})
    meta.setdefault("metric_definitions_version", METRIC_DEFINITIONS_VERSION)
    meta.update(extra_meta)
    return {
        **raw,
        "schema": DAY_SCHEMA,
        "day": {**raw["day"], "iso_date": day.isoformat(), "week_monday": week_monday_for(day).isoformat()},
        "metrics": _coerce_metrics(metrics, catalog, day),
        "metric_definitions": _snapshot_rows(raw, catalog, day),
        "meta": meta,
    }


def _decode_day_v3(raw: dict, catalog: MetricCatalog, migrated_at: str) -> dict:
    if not isinstance(raw.get("metrics"), dict):
        raise _DecodeMismatch("no metrics map")
    day = _day_of(raw)
    return _current_shape(raw, catalog, day, dict(raw["metrics"]), {})


def _legacy_default(metric_id: str, day, catalog: MetricCatalog):
    definition = catalog.resolve_definition(metric_id, day) or _DEFAULT_DEFINITIONS_BY_ID.get(metric_id)
    return None if definition is None else empty_value(definition)


def _decode_day_v2(raw: dict, catalog: MetricCatalog, migrated_at: str) -> dict:
    day = _day_of(raw)
    metrics = {}
    for path, metric_id in LEGACY_DAY_FIELD_PATHS.items():
        section_name, field_name = path.split(".", 1)
        section = raw.get(section_name)
        value = section.get(field_name) if isinstance(section, dict) else None
        metrics[metric_id] = _legacy_default(metric_id, day, catalog) if value is None else value
    if isinstance(raw.get("metrics"), dict):
        metrics.update(raw["metrics"])
    return _current_shape(
        raw,
        catalog,
        day,
        metrics,
        {MIGRATION_MARKER: True, "migrated_at_iso": migrated_at},
    )


DAY_DECODERS = (
    (3, _decode_day_v3),
    (2, _decode_day_v2),
)


def is_migrated(raw: dict) -> bool:
    meta = raw.get("meta")
    if isinstance(meta, dict) and meta.get(MIGRATION_MARKER):
        return True
    return isinstance(raw.get("metrics"), dict) and isinstance(raw.get("metric_definitions"), list)


def decode_day_payload(raw, catalog: MetricCatalog, declared_version: int | None = None, migrated_at: str | None = None) -> DayEntry:
    """Decode a day payload of any known generation into the current shape.

    Decoders are tried newest first, limited to the declared version; the
    oldest decoder accepts any object carrying a day.iso_date.
    """
    if not isinstance(raw, dict):
        raise ParseError("Day payload must be an object")
    migrated_at = migrated_at or utc_now_iso()
    if declared_version is not None and declared_version <= OLDEST_LEGACY_SCHEMA_VERSIONS["day"]:
        candidates = [item for item in DAY_DECODERS if item[0] <= OLDEST_LEGACY_SCHEMA_VERSIONS["day"]]
    elif declared_version is not None:
        candidates = [item for item in DAY_DECODERS if item[0] <= declared_version]
    else:
        candidates = list(DAY_DECODERS)

    for _version, decoder in candidates:
        try:
            payload = decoder(raw, catalog, migrated_at)
        except _DecodeMismatch:
            continue
        try:
            return DayEntry.model_validate(payload)
        except PydanticValidationError as exc:
            raise ParseError(f"Day {payload['day']['iso_date']} is malformed: {exc.errors()[0].get('msg')}") from exc
    raise ParseError("Day payload does not match any known schema version")


def _declared_day_version(raw: dict, fallback: int | None) -> int | None:
    if not raw.get("schema"):
        return fallback
    return parse_schema_tag(raw["schema"], expected_scope="day").version


def migrate_store(raw_store, catalog: MetricCatalog, migrated_at: str | None = None) -> tuple[StoreState, int]:
    """Bring every stored day to the current shape; returns the state and how many changed."""
    if raw_store is None:
        return StoreState(), 0
    if not isinstance(raw_store, dict):
        raise StorageCorruption("Store blob is not an object")
    raw_days = raw_store.get("days") or {}
    raw_weeks = raw_store.get("weeks") or {}
    if not isinstance(raw_days, dict) or not isinstance(raw_weeks, dict):
        raise StorageCorruption("Store blob days/weeks must be objects")

    migrated_at = migrated_at or utc_now_iso()
    changed = 0
    days = {}
    try:
        for key, raw_entry in raw_days.items():
            if not isinstance(raw_entry, dict):
                raise StorageCorruption(f"Stored day {key} is not an object")
            if is_migrated(raw_entry):
                entry = DayEntry.model_validate(raw_entry)
            else:
                if not (raw_entry.get("day") or {}).get("iso_date"):
                    raw_entry = {**raw_entry, "day": {**(raw_entry.get("day") or {}), "iso_date": key}}
                declared = _declared_day_version(raw_entry, None)
                entry = decode_day_payload(raw_entry, catalog, declared, migrated_at)
                changed += 1
            days[entry.day.iso_date.isoformat()] = entry
        weeks = {key: WeekRecord.model_validate(value or {}) for key, value in raw_weeks.items()}
    except (ParseError, SchemaError) as exc:
        raise StorageCorruption(str(exc)) from exc
    except PydanticValidationError as exc:
        raise StorageCorruption(f"Stored record is malformed: {exc.errors()[0].get('msg')}") from exc

    if changed:
        logger.info("Migrated %d stored day entries to %s", changed, DAY_SCHEMA)
    return StoreState(days=days, weeks=weeks), changed


@dataclass
class ImportResult:
    schema: str
    scope: str
    days: list = field(default_factory=list)
    weeks: list = field(default_factory=list)
    definitions_added: int = 0

    @property
    def focus_date(self) -> str | None:
        if self.scope == "week" and self.weeks:
            return self.weeks[0]
        return self.days[0] if self.days else None

    def describe(self) -> str:
        if self.scope == "day":
            return f"Imported day {self.focus_date}."
        if self.scope == "week":
            return f"Imported week {self.focus_date}."
        return "Imported all data and merged."


def parse_payload_text(text) -> dict:
    if isinstance(text, (bytes, bytearray)):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("Import failed: file is not UTF-8 text") from exc
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ParseError("Import failed: invalid JSON.") from exc
    if not isinstance(payload, dict):
        raise ParseError("Import failed: top-level JSON value must be an object.")
    return payload


def _import_day(payload: dict, catalog, state, tag, now, result):
    entry = decode_day_payload(payload, catalog, tag.version, now)
    result.days.append(entry.day.iso_date.isoformat())
    return catalog, put_day(state, entry)


def _structure_from(raw) -> WeekStructure:
    return WeekStructure(**{name: bool(raw.get(name)) for name in WEEK_STRUCTURE_FLAGS})


def _import_week(payload: dict, catalog, state, tag, now, result):
    week = payload.get("week")
    start = week.get("start_monday") if isinstance(week, dict) else None
    if not start:
        raise ParseError("Week payload is missing week.start_monday")
    try:
        monday = week_monday_for(start)
    except ValidationError as exc:
        raise ParseError(exc.message) from exc

    summary = payload.get("summary")
    if isinstance(summary, dict) and isinstance(summary.get("structure"), dict):
        state = set_week_structure(state, monday, _structure_from(summary["structure"]), now)

    raw_days = payload.get("days") or []
    if not isinstance(raw_days, list):
        raise ParseError("Week payload days must be a list")
    for raw_day in raw_days:
        if not isinstance(raw_day, dict):
            raise ParseError("Week payload days must be objects")
        declared = _declared_day_version(raw_day, tag.version)
        entry = decode_day_payload(raw_day, catalog, declared, now)
        state = put_day(state, entry)
        result.days.append(entry.day.iso_date.isoformat())
    result.weeks.append(monday.isoformat())
    return catalog, state


def _import_all(payload: dict, catalog, state, tag, now, result):
    raw_days = payload.get("days") or {}
    raw_weeks = payload.get("weeks") or {}
    if not isinstance(raw_days, dict) or not isinstance(raw_weeks, dict):
        raise ParseError("Full export days/weeks must be objects")

    definitions = payload.get("metric_definitions")
    if isinstance(definitions, dict):
        definitions = definitions.get("definitions")
    if definitions:
        if not isinstance(definitions, list):
            raise ParseError("metric_definitions must be a list")
        try:
            catalog, result.definitions_added = catalog.merge_unknown_metrics(definitions)
        except ValidationError as exc:
            raise ParseError(exc.message) from exc

    for key, raw_day in raw_days.items():
        if not isinstance(raw_day, dict):
            raise ParseError(f"Day {key} must be an object")
        if not (raw_day.get("day") or {}).get("iso_date"):
            raw_day = {**raw_day, "day": {**(raw_day.get("day") or {}), "iso_date": key}}
        declared = _declared_day_version(raw_day, tag.version)
        entry = decode_day_payload(raw_day, catalog, declared, now)
        state = put_day(state, entry)
        result.days.append(entry.day.iso_date.isoformat())

    weeks = dict(state.weeks)
    for key, raw_week in raw_weeks.items():
        try:
            monday = week_monday_for(key).isoformat()
            weeks[monday] = WeekRecord.model_validate(raw_week or {})
        except (ValidationError, PydanticValidationError) as exc:
            raise ParseError(f"Week {key} is malformed") from exc
        result.weeks.append(monday)
    state = state.model_copy(update={"weeks": weeks})
    return catalog, state


_IMPORTERS = {
    "day": _import_day,
    "week": _import_week,
    "all": _import_all,
}


def apply_import(payload: dict, catalog: MetricCatalog, state: StoreState, now: str | None = None):
    """Merge an exchange payload into copies of the catalog and store.

    Nothing is mutated in place: on any error the caller's values are untouched.
    """
    tag = parse_schema_tag(payload.get("schema"))
    now = now or utc_now_iso()
    result = ImportResult(schema=str(tag), scope=tag.scope)
    if tag.version > CURRENT_SCHEMA_VERSIONS[tag.scope]:
        raise SchemaError(f"Refusing future schema {tag}")
    catalog, state = _IMPORTERS[tag.scope](payload, catalog, state, tag, now, result)
    return catalog, state, result
