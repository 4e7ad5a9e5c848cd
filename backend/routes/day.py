from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.dependencies import get_service, parse_day
from backend.schemas import DayValuesPayload
from scorecard.codec import format_value

router = APIRouter()


def _form_values(service, day, entry) -> dict:
    metrics = entry.metrics if entry is not None else {}
    return {
        definition.metric_id: format_value(definition, metrics.get(definition.metric_id))
        for definition in service.resolve_active_definitions(day)
    }


@router.get("/v1/day/{day}")
def get_day(day: str, service=Depends(get_service)):
    target = parse_day(day)
    entry = service.get_day(target)
    return {
        "date": target.isoformat(),
        "saved": entry is not None,
        "data": entry.to_payload() if entry is not None else None,
        "form": _form_values(service, target, entry),
    }


@router.put("/v1/day/{day}")
def save_day(day: str, payload: DayValuesPayload, service=Depends(get_service)):
    target = parse_day(day)
    entry = service.save_day(target, payload.metrics)
    return {
        "date": target.isoformat(),
        "saved": True,
        "data": entry.to_payload(),
        "form": _form_values(service, target, entry),
    }


@router.delete("/v1/day/{day}")
def delete_day(day: str, service=Depends(get_service)):
    target = parse_day(day)
    service.delete_day(target)
    return {"ok": True, "status": f"Deleted {target.isoformat()}."}
