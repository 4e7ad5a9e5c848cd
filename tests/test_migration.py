import json

import pytest

from scorecard.constants import MIGRATION_MARKER
from scorecard.days import DAY_SCHEMA, build_day_entry, put_day
from scorecard.errors import ParseError, SchemaError, StorageCorruption
from scorecard.migration import (
    apply_import,
    decode_day_payload,
    is_migrated,
    migrate_store,
    parse_payload_text,
    parse_schema_tag,
)
from scorecard.models import StoreState

MIGRATED_AT = "2024-03-06T12:00:00+00:00"


def _legacy_day(iso_date="2024-03-05"):
    return {
        "schema": "accountability_scorecard.day.v2",
        "day": {"iso_date": iso_date},
        "reflection": {"one_sentence": "Shipped the parser."},
        "physiology": {"sleep_hours": 6.5, "caffeine_drinks": 2, "sugar_binge": True},
        "execution": {"deep_work_tech": 3, "artifact_technical": "parser"},
    }


def test_parse_schema_tag():
    tag = parse_schema_tag("accountability_scorecard.week.v2")
    assert (tag.family, tag.scope, tag.version) == ("accountability_scorecard", "week", 2)
    assert tag.is_legacy is True
    assert str(tag) == "accountability_scorecard.week.v2"


@pytest.mark.parametrize(
    "raw",
    [None, "", "scorecard", "other_app.day.v3", "accountability_scorecard.month.v3", "accountability_scorecard.day.vX"],
)
def test_unrecognized_schema_tags(raw):
    with pytest.raises(SchemaError):
        parse_schema_tag(raw)


def test_future_schema_is_refused():
    with pytest.raises(SchemaError, match="Refusing future schema accountability_scorecard.day.v99"):
        parse_schema_tag("accountability_scorecard.day.v99")


def test_expected_scope_mismatch():
    with pytest.raises(SchemaError):
        parse_schema_tag("accountability_scorecard.week.v3", expected_scope="day")


def test_legacy_day_is_mapped_to_metrics(catalog):
    entry = decode_day_payload(_legacy_day(), catalog, 2, MIGRATED_AT)

    assert entry.schema_tag == DAY_SCHEMA
    assert entry.metrics["sleep_hours"] == 6.5
    assert entry.metrics["caffeine_drinks"] == 2
    assert entry.metrics["sugar_binge"] is True
    assert entry.metrics["movement_20m"] is False
    assert entry.metrics["weight_optional"] is None
    assert entry.metrics["deep_work_tech"] == 3
    assert entry.metrics["deep_work_creative"] is None
    assert entry.metrics["one_sentence"] == "Shipped the parser."
    assert entry.metrics["artifact_creative"] == ""
    assert entry.meta[MIGRATION_MARKER] is True
    assert entry.meta["migrated_at_iso"] == MIGRATED_AT
    assert entry.day.week_monday.isoformat() == "2024-03-04"
    assert len(entry.metric_definitions) == 10
    # Legacy sections are preserved alongside the metric map.
    assert entry.to_payload()["physiology"]["sleep_hours"] == 6.5


def test_current_day_without_snapshot_is_backfilled(catalog):
    raw = {"schema": DAY_SCHEMA, "day": {"iso_date": "2024-03-05"}, "metrics": {"sleep_hours": 7.0}}
    entry = decode_day_payload(raw, catalog, 3, MIGRATED_AT)
    assert entry.metrics == {"sleep_hours": 7.0}
    assert {item.metric_id for item in entry.metric_definitions} == set(catalog.metric_ids())
    assert MIGRATION_MARKER not in entry.meta


def test_day_without_date_is_a_parse_error(catalog):
    with pytest.raises(ParseError):
        decode_day_payload({"schema": DAY_SCHEMA, "metrics": {}}, catalog, 3)


def test_is_migrated():
    assert is_migrated({"meta": {MIGRATION_MARKER: True}})
    assert is_migrated({"metrics": {}, "metric_definitions": []})
    assert not is_migrated({"metrics": {}})
    assert not is_migrated(_legacy_day())


def test_migrate_store_is_idempotent(catalog):
    raw_store = {"days": {"2024-03-05": _legacy_day()}, "weeks": {}}

    state, changed = migrate_store(raw_store, catalog, MIGRATED_AT)
    assert changed == 1
    assert state.days["2024-03-05"].metrics["sleep_hours"] == 6.5

    again, changed_again = migrate_store(state.to_payload(), catalog, "2024-04-01T00:00:00+00:00")
    assert changed_again == 0
    assert again == state


def test_migrate_store_fills_missing_date_from_key(catalog):
    legacy = _legacy_day()
    del legacy["day"]
    state, changed = migrate_store({"days": {"2024-03-05": legacy}}, catalog, MIGRATED_AT)
    assert changed == 1
    assert state.days["2024-03-05"].day.iso_date.isoformat() == "2024-03-05"


@pytest.mark.parametrize("raw_store", [[], {"days": ["2024-03-05"]}, {"days": {"2024-03-05": "oops"}}])
def test_migrate_store_rejects_corrupt_blobs(catalog, raw_store):
    with pytest.raises(StorageCorruption):
        migrate_store(raw_store, catalog)


def test_migrate_empty_store(catalog):
    assert migrate_store(None, catalog) == (StoreState(), 0)


def test_parse_payload_text():
    assert parse_payload_text(b'{"schema": "x"}') == {"schema": "x"}
    with pytest.raises(ParseError, match="invalid JSON"):
        parse_payload_text("{not json")
    with pytest.raises(ParseError):
        parse_payload_text("[1, 2]")


def test_import_day(catalog):
    state = StoreState()
    new_catalog, new_state, result = apply_import(_legacy_day(), catalog, state, MIGRATED_AT)

    assert new_catalog is catalog
    assert result.scope == "day"
    assert result.days == ["2024-03-05"]
    assert result.focus_date == "2024-03-05"
    assert result.describe() == "Imported day 2024-03-05."
    assert new_state.days["2024-03-05"].metrics["deep_work_tech"] == 3
    assert state.days == {}


def test_import_future_schema_leaves_inputs_untouched(catalog):
    state = put_day(StoreState(), build_day_entry(catalog, "2024-03-05", {"sleep_hours": 8}))
    before = state.to_payload()
    payload = {"schema": "accountability_scorecard.day.v99", "day": {"iso_date": "2024-03-05"}, "metrics": {}}

    with pytest.raises(SchemaError):
        apply_import(payload, catalog, state)
    assert state.to_payload() == before


def test_import_week_sets_structure_and_days(catalog):
    payload = {
        "schema": "accountability_scorecard.week.v2",
        "week": {"start_monday": "2024-03-04", "end_sunday": "2024-03-10"},
        "summary": {"structure": {"priorities_defined": True, "two_completed": 1, "weekly_review_done": False}},
        "days": [
            {"day": {"iso_date": "2024-03-04"}, "physiology": {"sleep_hours": 7}},
            _legacy_day("2024-03-06"),
        ],
    }
    _, state, result = apply_import(payload, catalog, StoreState(), MIGRATED_AT)

    assert result.weeks == ["2024-03-04"]
    assert result.days == ["2024-03-04", "2024-03-06"]
    assert result.describe() == "Imported week 2024-03-04."
    structure = state.weeks["2024-03-04"].structure
    assert structure.priorities_defined is True
    assert structure.two_completed is True
    assert structure.score == 2
    assert state.days["2024-03-04"].metrics["sleep_hours"] == 7


def test_import_week_requires_start(catalog):
    with pytest.raises(ParseError):
        apply_import({"schema": "accountability_scorecard.week.v3", "week": {}}, catalog, StoreState())


def test_import_all_merges_unknown_metrics(catalog):
    payload = {
        "schema": "accountability_scorecard.all.v3",
        "days": {
            "2024-03-05": {
                "schema": DAY_SCHEMA,
                "day": {"iso_date": "2024-03-05", "week_monday": "2024-03-04"},
                "metrics": {"steps": 9000},
                "metric_definitions": [],
            }
        },
        "weeks": {"2024-03-04": {"structure": {"weekly_review_done": True}}},
        "metric_definitions": [
            {"metric_id": "steps", "label": "Steps", "type": "number_int", "aggregation": "sum", "active_from": "2024-01-01"},
            {"metric_id": "sleep_hours", "label": "Remote sleep", "type": "number_float", "active_from": "2024-01-01"},
        ],
    }
    new_catalog, state, result = apply_import(json.loads(json.dumps(payload)), catalog, StoreState(), MIGRATED_AT)

    assert result.definitions_added == 1
    assert result.describe() == "Imported all data and merged."
    assert new_catalog.resolve_definition("steps", "2024-03-05").label == "Steps"
    assert new_catalog.resolve_definition("sleep_hours", "2024-03-05").label == "Sleep"
    assert len(catalog) == 10
    assert state.days["2024-03-05"].metrics == {"steps": 9000}
    assert state.weeks["2024-03-04"].structure.weekly_review_done is True
