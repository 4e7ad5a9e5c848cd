import asyncio
import json
from datetime import date

import pytest

from scorecard.errors import ImportInProgressError, NotFoundError, ParseError, SchemaError, ValidationError
from scorecard.models import WeekStructure

TODAY = date(2024, 3, 6)

DAY_PAYLOAD = {
    "schema": "accountability_scorecard.day.v3",
    "day": {"iso_date": "2024-03-05"},
    "metrics": {"sleep_hours": 6.0},
}


def test_today_comes_from_getter(service):
    assert service.today() == TODAY


def test_invalid_save_leaves_state_and_storage_unchanged(service, kv):
    service.save_day("2024-03-06", {"deep_work_tech": 2})
    before = kv.snapshot()

    with pytest.raises(ValidationError) as exc_info:
        service.save_day("2024-03-06", {"deep_work_tech": -1})

    assert exc_info.value.metric_id == "deep_work_tech"
    assert service.get_day("2024-03-06").metrics["deep_work_tech"] == 2
    assert kv.snapshot() == before


def test_delete_day(service):
    service.save_day("2024-03-06", {})
    service.delete_day("2024-03-06")
    assert service.get_day("2024-03-06") is None
    with pytest.raises(NotFoundError):
        service.delete_day("2024-03-06")


def test_past_catalog_edit_leaves_catalog_unchanged(service, kv):
    before_catalog = service.catalog
    before = kv.snapshot()
    with pytest.raises(ValidationError):
        service.append_metric_version(
            {"metric_id": "sleep_hours", "label": "Backdated", "type": "number_float"},
            "2024-03-01",
        )
    assert service.catalog is before_catalog
    assert kv.snapshot() == before


def test_retire_metric_hides_it_after_the_date(service):
    service.retire_metric("weight_optional", TODAY)
    assert service.resolve_definition("weight_optional", TODAY) is not None
    assert service.resolve_definition("weight_optional", "2024-03-07") is None
    assert "weight_optional" not in [item.metric_id for item in service.resolve_active_definitions("2024-03-07")]


def test_list_recent_weeks(service):
    service.save_day("2024-02-20", {"sleep_hours": 6})
    service.save_day("2024-03-05", {"sleep_hours": 8})
    service.set_week_structure("2024-02-26", WeekStructure(priorities_defined=True))

    weeks = service.list_recent_weeks()
    assert [summary.week_monday.isoformat() for summary in weeks] == ["2024-03-04", "2024-02-26", "2024-02-19"]
    assert weeks[1].days_logged == 0
    assert [summary.week_monday.isoformat() for summary in service.list_recent_weeks(limit=1)] == ["2024-03-04"]


@pytest.mark.parametrize(
    "text, error",
    [
        ("{broken", ParseError),
        (json.dumps({"schema": "accountability_scorecard.day.v99", "day": {"iso_date": "2024-03-05"}}), SchemaError),
        (json.dumps({"schema": "someone_else.day.v3"}), SchemaError),
    ],
)
def test_rejected_import_changes_nothing(service, kv, text, error):
    service.save_day("2024-03-06", {"sleep_hours": 7})
    before_state = service.state
    before = kv.snapshot()

    with pytest.raises(error):
        service.import_text(text)

    assert service.state is before_state
    assert kv.snapshot() == before


def test_import_text_persists(service, kv):
    result = service.import_text(json.dumps(DAY_PAYLOAD))
    assert result.focus_date == "2024-03-05"
    assert "2024-03-05" in json.loads(kv.get(service.repository.store_key))["days"]


def test_async_import(service):
    async def read():
        return json.dumps(DAY_PAYLOAD).encode("utf-8")

    result = asyncio.run(service.import_from(read))
    assert result.days == ["2024-03-05"]
    assert service.get_day("2024-03-05").metrics["sleep_hours"] == 6.0


def test_second_import_fails_fast_while_one_is_running(service):
    async def scenario():
        gate = asyncio.Event()

        async def slow_read():
            await gate.wait()
            return json.dumps(DAY_PAYLOAD)

        first = asyncio.create_task(service.import_from(slow_read))
        await asyncio.sleep(0)
        with pytest.raises(ImportInProgressError):
            await service.import_from(slow_read, wait=False)
        gate.set()
        return await first

    result = asyncio.run(scenario())
    assert result.days == ["2024-03-05"]


def test_queued_imports_apply_in_order(service):
    second_payload = dict(DAY_PAYLOAD, metrics={"sleep_hours": 9.0})

    async def scenario():
        gate = asyncio.Event()

        async def slow_read():
            await gate.wait()
            return json.dumps(DAY_PAYLOAD)

        async def quick_read():
            return json.dumps(second_payload)

        first = asyncio.create_task(service.import_from(slow_read))
        await asyncio.sleep(0)
        second = asyncio.create_task(service.import_from(quick_read))
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)

    asyncio.run(scenario())
    assert service.get_day("2024-03-05").metrics["sleep_hours"] == 9.0


def test_oversized_number_is_saved_as_empty(service):
    entry = service.save_day("2024-03-04", {"sleep_hours": 10**400})
    assert entry.metrics["sleep_hours"] is None


def test_imported_oversized_number_does_not_break_summaries(service):
    payload = dict(DAY_PAYLOAD, day={"iso_date": "2024-03-04"}, metrics={"sleep_hours": 10**400, "deep_work_tech": 2})
    service.import_text(json.dumps(payload))

    assert service.get_day("2024-03-04").metrics["sleep_hours"] is None
    summary = service.summarize_week("2024-03-04")
    assert summary.physiology.sleep_avg_hours is None
    assert summary.execution.deep_work_sessions_technical_total == 2
    assert [week.week_monday.isoformat() for week in service.list_recent_weeks()] == ["2024-03-04"]
