from __future__ import annotations

import math

from scorecard.catalog import MetricCatalog
from scorecard.codec import is_finite_number
from scorecard.constants import EXECUTION_SUMMARY_FIELDS, PHYSIOLOGY_SUMMARY_FIELDS
from scorecard.dates import week_days, week_monday_for, week_sunday_for
from scorecard.days import get_week_structure
from scorecard.models import (
    Aggregation,
    ExecutionSummary,
    MetricAggregate,
    PhysiologySummary,
    StoreState,
    StructureSummary,
    WeekSummary,
)


def _is_null(value) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _numbers(values) -> list:
    return [value for value in values if is_finite_number(value)]


def aggregate_average(values):
    numbers = _numbers(values)
    if not numbers:
        return None, 0
    return sum(numbers) / len(numbers), len(numbers)


def aggregate_sum(values):
    numbers = _numbers(values)
    return sum(numbers), len(numbers)


def aggregate_count_true(values):
    return sum(1 for value in values if value is True), len(values)


def aggregate_count_selected(values):
    # Lists contribute every selected option; scalars count once when non-empty.
    total = 0
    days = 0
    for value in values:
        if isinstance(value, (list, tuple)):
            if value:
                total += len(value)
                days += 1
        elif not _is_null(value) and value != "":
            total += 1
            days += 1
    return total, days


def aggregate_latest(values):
    present = [value for value in values if not _is_null(value)]
    if not present:
        return None, 0
    return present[-1], len(present)


def aggregate_none(values):
    return None, sum(1 for value in values if not _is_null(value))


AGGREGATORS = {
    Aggregation.AVERAGE: aggregate_average,
    Aggregation.SUM: aggregate_sum,
    Aggregation.COUNT_TRUE: aggregate_count_true,
    Aggregation.COUNT_SELECTED: aggregate_count_selected,
    Aggregation.LATEST: aggregate_latest,
    Aggregation.NONE: aggregate_none,
}

_missing_aggregators = set(Aggregation) - set(AGGREGATORS)
if _missing_aggregators:
    raise RuntimeError(f"No aggregator for: {sorted(item.value for item in _missing_aggregators)}")


def _bucket_week_values(catalog: MetricCatalog, state: StoreState, monday) -> tuple[int, dict]:
    days_logged = 0
    buckets = {}
    for day in week_days(monday):
        entry = state.days.get(day.isoformat())
        if entry is None:
            continue
        days_logged += 1
        for definition in catalog.resolve_active_definitions(day):
            bucket = buckets.setdefault(definition.metric_id, {"definition": definition, "values": []})
            # The most recent day's version decides label and rule.
            bucket["definition"] = definition
            bucket["values"].append(entry.metrics.get(definition.metric_id))
    return days_logged, buckets


def _convenience_fields(aggregates: dict, field_map: dict) -> dict:
    fields = {}
    for field_name, (metric_id, attribute) in field_map.items():
        aggregate = aggregates.get(metric_id)
        if aggregate is not None:
            fields[field_name] = getattr(aggregate, attribute)
    return fields


def summarize_week(catalog: MetricCatalog, state: StoreState, week_monday) -> WeekSummary:
    monday = week_monday_for(week_monday)
    days_logged, buckets = _bucket_week_values(catalog, state, monday)

    aggregates = {}
    for metric_id in sorted(buckets):
        definition = buckets[metric_id]["definition"]
        value, value_count = AGGREGATORS[definition.aggregation](buckets[metric_id]["values"])
        aggregates[metric_id] = MetricAggregate(
            metric_id=metric_id,
            label=definition.label,
            aggregation=definition.aggregation,
            value=value,
            value_count=value_count,
        )

    structure = get_week_structure(state, monday)
    return WeekSummary(
        week_monday=monday,
        end_sunday=week_sunday_for(monday),
        days_logged=days_logged,
        metrics=aggregates,
        physiology=PhysiologySummary(**_convenience_fields(aggregates, PHYSIOLOGY_SUMMARY_FIELDS)),
        execution=ExecutionSummary(**_convenience_fields(aggregates, EXECUTION_SUMMARY_FIELDS)),
        structure=StructureSummary(**structure.model_dump(), score=structure.score),
    )


def weeks_with_data(state: StoreState) -> list[str]:
    weeks = set(state.weeks)
    for key in state.days:
        weeks.add(week_monday_for(key).isoformat())
    return sorted(weeks, reverse=True)
