from __future__ import annotations

from scorecard.aggregation import summarize_week
from scorecard.catalog import MetricCatalog
from scorecard.constants import CURRENT_SCHEMA_VERSIONS, METRIC_DEFINITIONS_VERSION, SCHEMA_FAMILY
from scorecard.dates import utc_now_iso, week_days, week_monday_for
from scorecard.days import day_key
from scorecard.errors import NotFoundError
from scorecard.models import StoreState

WEEK_SCHEMA = f"{SCHEMA_FAMILY}.week.v{CURRENT_SCHEMA_VERSIONS['week']}"
ALL_SCHEMA = f"{SCHEMA_FAMILY}.all.v{CURRENT_SCHEMA_VERSIONS['all']}"


def day_export_filename(day) -> str:
    return f"scorecard_day_{day_key(day)}.json"


def week_export_filename(week_monday) -> str:
    return f"scorecard_week_{week_monday_for(week_monday).isoformat()}.json"


ALL_EXPORT_FILENAME = "scorecard_all_data.json"


def _export_meta(exported_at: str | None) -> dict:
    return {
        "exported_at_iso": exported_at or utc_now_iso(),
        "metric_definitions_version": METRIC_DEFINITIONS_VERSION,
    }


def export_day(state: StoreState, day) -> dict:
    # The stored entry is already a day payload; re-importing it is lossless.
    entry = state.days.get(day_key(day))
    if entry is None:
        raise NotFoundError(f"No saved entry for {day_key(day)}.")
    return entry.to_payload()


def export_week(
    catalog: MetricCatalog,
    state: StoreState,
    week_monday,
    timezone_name: str = "local",
    exported_at: str | None = None,
) -> dict:
    summary = summarize_week(catalog, state, week_monday)
    days = [state.days[day.isoformat()] for day in week_days(summary.week_monday) if day.isoformat() in state.days]
    summary_payload = summary.to_payload()
    return {
        "schema": WEEK_SCHEMA,
        "week": {
            "start_monday": summary_payload["week_monday"],
            "end_sunday": summary_payload["end_sunday"],
            "timezone": timezone_name or "local",
        },
        "summary": {
            "days_logged": summary.days_logged,
            "metrics": summary_payload["metrics"],
            "physiology": summary_payload["physiology"],
            "execution": summary_payload["execution"],
            "structure": summary_payload["structure"],
        },
        "days": [entry.to_payload() for entry in days],
        "metric_definitions": [
            definition.to_payload()
            for definition in catalog.snapshot_for_date_range(summary.week_monday, summary.end_sunday)
        ],
        "meta": _export_meta(exported_at),
    }


def export_all(
    catalog: MetricCatalog,
    state: StoreState,
    timezone_name: str = "local",
    exported_at: str | None = None,
) -> dict:
    payload = state.to_payload()
    return {
        "schema": ALL_SCHEMA,
        "timezone": timezone_name or "local",
        "days": payload["days"],
        "weeks": payload["weeks"],
        "metric_definitions": [definition.to_payload() for definition in catalog],
        "meta": _export_meta(exported_at),
    }
