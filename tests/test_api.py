import json
from datetime import date

import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from backend.settings import Settings
from scorecard.service import ScorecardService
from scorecard.storage import MemoryKeyValueStore

TODAY = date(2024, 3, 6)


@pytest.fixture
def client():
    service = ScorecardService(MemoryKeyValueStore(), today_getter=lambda: TODAY)
    app = create_app(service=service, settings=Settings(SCORECARD_LOG_LEVEL="WARNING"))
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_list_active_metrics(client):
    response = client.get("/v1/metrics")
    assert response.status_code == 200
    body = response.json()
    assert body["date"] == "2024-03-06"
    assert len(body["items"]) == 10
    assert body["items"][0]["metric_id"] == "artifact_creative"

    assert client.get("/v1/metrics", params={"date": "2023-01-01"}).json()["items"] == []


def test_invalid_date_is_rejected(client):
    response = client.get("/v1/day/not-a-date")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid date format"


def test_get_metric_and_missing_metric(client):
    assert client.get("/v1/metrics/sleep_hours").json()["label"] == "Sleep"
    assert client.get("/v1/metrics/unknown_metric").status_code == 404


def test_append_version_and_list_versions(client):
    response = client.post(
        "/v1/metrics/sleep_hours/versions",
        json={
            "label": "Sleep (tracked)",
            "type": "number_float",
            "aggregation": "average",
            "group": "Physiology",
            "input_attrs": {"min": 0, "max": 24, "step": 0.25},
            "effective_from": "2024-03-08",
        },
    )
    assert response.status_code == 200
    items = response.json()["items"]
    assert [item["active_to"] for item in items] == ["2024-03-07", None]

    versions = client.get("/v1/metrics/sleep_hours/versions").json()["items"]
    assert versions == items

    snapshot = client.get("/v1/metrics/snapshot", params={"start": "2024-03-04", "end": "2024-03-10"}).json()
    assert [item["label"] for item in snapshot["items"] if item["metric_id"] == "sleep_hours"] == [
        "Sleep",
        "Sleep (tracked)",
    ]


def test_backdated_version_is_a_validation_error(client):
    response = client.post(
        "/v1/metrics/sleep_hours/versions",
        json={"label": "Backdated", "type": "number_float", "effective_from": "2024-03-01"},
    )
    assert response.status_code == 400
    assert "2024-03-06" in response.json()["detail"]


def test_retire_metric(client):
    response = client.post("/v1/metrics/weight_optional/retire", json={"retire_from": "2024-03-06"})
    assert response.status_code == 200
    assert response.json()["items"][0]["active_to"] == "2024-03-06"
    assert client.get("/v1/metrics/weight_optional", params={"date": "2024-03-07"}).status_code == 404
    again = client.post("/v1/metrics/weight_optional/retire", json={"retire_from": "2024-03-07"})
    assert again.status_code == 404


def test_day_round_trip(client):
    empty = client.get("/v1/day/2024-03-06").json()
    assert empty["saved"] is False
    assert empty["form"]["sleep_hours"] == ""

    saved = client.put("/v1/day/2024-03-06", json={"metrics": {"sleep_hours": "8", "movement_20m": True}})
    assert saved.status_code == 200
    assert saved.json()["data"]["metrics"]["sleep_hours"] == 8.0

    loaded = client.get("/v1/day/2024-03-06").json()
    assert loaded["saved"] is True
    assert loaded["form"]["sleep_hours"] == "8"
    assert loaded["form"]["movement_20m"] == "true"

    deleted = client.delete("/v1/day/2024-03-06")
    assert deleted.json() == {"ok": True, "status": "Deleted 2024-03-06."}
    assert client.delete("/v1/day/2024-03-06").status_code == 404


def test_invalid_day_values(client):
    response = client.put("/v1/day/2024-03-06", json={"metrics": {"deep_work_tech": -1}})
    assert response.status_code == 400
    assert response.json()["detail"] == "Deep work sessions (tech) must be between 0 and 10."
    assert client.get("/v1/day/2024-03-06").json()["saved"] is False


def test_week_summary_and_structure(client):
    client.put("/v1/day/2024-03-04", json={"metrics": {"sleep_hours": 7}})
    client.put("/v1/day/2024-03-06", json={"metrics": {"sleep_hours": 8}})
    structure = client.put(
        "/v1/week/2024-03-06/structure",
        json={"priorities_defined": True, "two_completed": True, "weekly_review_done": False},
    ).json()
    assert structure["week_monday"] == "2024-03-04"
    assert structure["score"] == 2

    summary = client.get("/v1/week/2024-03-04/summary").json()
    assert summary["days_logged"] == 2
    assert summary["physiology"]["sleep_avg_hours"] == 7.5
    assert summary["structure"]["score"] == 2

    assert client.get("/v1/week/2024-03-10/structure").json()["structure"]["priorities_defined"] is True
    recent = client.get("/v1/weeks/recent").json()["items"]
    assert [item["week_monday"] for item in recent] == ["2024-03-04"]


def test_export_and_import(client):
    client.put("/v1/day/2024-03-05", json={"metrics": {"sleep_hours": 6.5}})
    exported = client.get("/v1/export/day/2024-03-05")
    assert exported.status_code == 200
    assert 'filename="scorecard_day_2024-03-05.json"' in exported.headers["content-disposition"]

    client.delete("/v1/day/2024-03-05")
    response = client.post(
        "/v1/import",
        files={"file": ("day.json", exported.content, "application/json")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["scope"] == "day"
    assert body["focus_date"] == "2024-03-05"
    assert body["status"] == "Imported day 2024-03-05."
    assert client.get("/v1/day/2024-03-05").json()["data"]["metrics"]["sleep_hours"] == 6.5


def test_export_week_and_all(client):
    week = client.get("/v1/export/week/2024-03-06")
    assert week.json()["schema"] == "accountability_scorecard.week.v3"
    assert "scorecard_week_2024-03-04.json" in week.headers["content-disposition"]
    everything = client.get("/v1/export/all")
    assert everything.json()["schema"] == "accountability_scorecard.all.v3"
    assert "scorecard_all_data.json" in everything.headers["content-disposition"]


def test_import_rejects_future_schema(client):
    payload = json.dumps({"schema": "accountability_scorecard.day.v99", "day": {"iso_date": "2024-03-05"}})
    response = client.post("/v1/import", files={"file": ("day.json", payload, "application/json")})
    assert response.status_code == 422
    assert "Refusing future schema" in response.json()["detail"]


def test_import_rejects_invalid_json(client):
    response = client.post("/v1/import", files={"file": ("day.json", b"{nope", "application/json")})
    assert response.status_code == 400
    assert response.json()["detail"] == "Import failed: invalid JSON."


def test_imported_values_follow_the_metric_type(client):
    client.post(
        "/v1/metrics/tags/versions",
        json={
            "label": "Tags",
            "type": "select_multi",
            "aggregation": "count_selected",
            "options": [{"value": "5", "label": "Five"}],
            "effective_from": "2024-03-06",
        },
    )
    payload = json.dumps(
        {"schema": "accountability_scorecard.day.v3", "day": {"iso_date": "2024-03-06"}, "metrics": {"tags": 5}}
    )
    assert client.post("/v1/import", files={"file": ("day.json", payload, "application/json")}).status_code == 200

    response = client.get("/v1/day/2024-03-06")
    assert response.status_code == 200
    assert response.json()["data"]["metrics"]["tags"] == ["5"]
    assert response.json()["form"]["tags"] == "5"
