from __future__ import annotations

import logging

from scorecard.catalog import MetricCatalog
from scorecard.codec import parse_value, validate_value
from scorecard.constants import (
    CURRENT_SCHEMA_VERSIONS,
    DEFAULT_STEP_TOLERANCE,
    METRIC_DEFINITIONS_VERSION,
    SCHEMA_FAMILY,
)
from scorecard.dates import parse_iso_date, utc_now_iso, week_monday_for
from scorecard.errors import NotFoundError, ValidationError
from scorecard.models import DayEntry, DayRef, StoreState, WeekRecord, WeekStructure

logger = logging.getLogger(__name__)

DAY_SCHEMA = f"{SCHEMA_FAMILY}.day.v{CURRENT_SCHEMA_VERSIONS['day']}"


def day_key(day) -> str:
    return parse_iso_date(day).isoformat()


def build_day_entry(
    catalog: MetricCatalog,
    day,
    raw_values: dict | None,
    saved_at: str | None = None,
    tolerance: float = DEFAULT_STEP_TOLERANCE,
) -> DayEntry:
    day = parse_iso_date(day)
    raw_values = dict(raw_values or {})
    definitions = catalog.resolve_active_definitions(day)

    metrics = {}
    for definition in definitions:
        value = parse_value(definition, raw_values.get(definition.metric_id))
        error = validate_value(definition, value, tolerance)
        if error:
            raise ValidationError(error, metric_id=definition.metric_id)
        metrics[definition.metric_id] = value

    ignored = sorted(set(raw_values) - set(metrics))
    if ignored:
        logger.debug("Ignoring metrics not active on %s: %s", day.isoformat(), ", ".join(ignored))

    return DayEntry(
        schema_tag=DAY_SCHEMA,
        day=DayRef(iso_date=day, week_monday=week_monday_for(day)),
        metrics=metrics,
        metric_definitions=definitions,
        meta={
            "metric_definitions_version": METRIC_DEFINITIONS_VERSION,
            "saved_at_iso": saved_at or utc_now_iso(),
        },
    )


def get_day(state: StoreState, day) -> DayEntry | None:
    return state.days.get(day_key(day))


def put_day(state: StoreState, entry: DayEntry) -> StoreState:
    days = dict(state.days)
    days[entry.day.iso_date.isoformat()] = entry
    return state.model_copy(update={"days": days})


def delete_day(state: StoreState, day) -> StoreState:
    key = day_key(day)
    if key not in state.days:
        raise NotFoundError(f"No saved entry for {key}.")
    days = dict(state.days)
    del days[key]
    return state.model_copy(update={"days": days})


def get_week_structure(state: StoreState, week_monday) -> WeekStructure:
    record = state.weeks.get(week_monday_for(week_monday).isoformat())
    if record is None:
        return WeekStructure()
    return record.structure


def set_week_structure(state: StoreState, week_monday, structure: WeekStructure, updated_at: str | None = None) -> StoreState:
    key = week_monday_for(week_monday).isoformat()
    weeks = dict(state.weeks)
    existing = weeks.get(key) or WeekRecord()
    weeks[key] = existing.model_copy(
        update={
            "structure": structure,
            "meta": {**existing.meta, "updated_at_iso": updated_at or utc_now_iso()},
        }
    )
    return state.model_copy(update={"weeks": weeks})
