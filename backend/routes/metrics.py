from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.dependencies import get_service, parse_day
from backend.schemas import MetricRetire, MetricVersionCreate

router = APIRouter()


def _payloads(definitions):
    return [definition.to_payload() for definition in definitions]


@router.get("/v1/metrics")
def list_active_metrics(day: str | None = Query(None, alias="date"), service=Depends(get_service)):
    target = parse_day(day) if day else service.today()
    return {"date": target.isoformat(), "items": _payloads(service.resolve_active_definitions(target))}


@router.get("/v1/metrics/snapshot")
def metrics_snapshot(start: date = Query(...), end: date = Query(...), service=Depends(get_service)):
    if end < start:
        raise HTTPException(status_code=400, detail="End date must be after start date")
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "items": _payloads(service.snapshot_for_date_range(start, end)),
    }


@router.get("/v1/metrics/{metric_id}")
def get_metric(metric_id: str, day: str | None = Query(None, alias="date"), service=Depends(get_service)):
    target = parse_day(day) if day else service.today()
    definition = service.resolve_definition(metric_id, target)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"{metric_id} is not active on {target.isoformat()}")
    return definition.to_payload()


@router.get("/v1/metrics/{metric_id}/versions")
def list_metric_versions(metric_id: str, service=Depends(get_service)):
    return {"metric_id": metric_id, "items": _payloads(service.catalog.versions(metric_id))}


@router.post("/v1/metrics/{metric_id}/versions")
def append_metric_version(metric_id: str, payload: MetricVersionCreate, service=Depends(get_service)):
    catalog = service.append_metric_version(payload.to_definition_payload(metric_id), payload.effective_from)
    return {"ok": True, "metric_id": metric_id, "items": _payloads(catalog.versions(metric_id))}


@router.post("/v1/metrics/{metric_id}/retire")
def retire_metric(metric_id: str, payload: MetricRetire, service=Depends(get_service)):
    catalog = service.retire_metric(metric_id, payload.retire_from)
    return {"ok": True, "metric_id": metric_id, "items": _payloads(catalog.versions(metric_id))}
