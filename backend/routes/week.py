from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from backend.dependencies import get_service, parse_day
from backend.schemas import WeekStructurePayload
from scorecard.dates import week_monday_for
from scorecard.models import WeekStructure

router = APIRouter()


@router.get("/v1/week/{week}/summary")
def week_summary(week: str, service=Depends(get_service)):
    return service.summarize_week(parse_day(week)).to_payload()


@router.get("/v1/week/{week}/structure")
def get_week_structure(week: str, service=Depends(get_service)):
    monday = week_monday_for(parse_day(week))
    structure = service.get_week_structure(monday)
    return {"week_monday": monday.isoformat(), "structure": structure.model_dump(), "score": structure.score}


@router.put("/v1/week/{week}/structure")
def set_week_structure(week: str, payload: WeekStructurePayload, service=Depends(get_service)):
    monday = week_monday_for(parse_day(week))
    structure = service.set_week_structure(monday, WeekStructure(**payload.model_dump()))
    return {"week_monday": monday.isoformat(), "structure": structure.model_dump(), "score": structure.score}


@router.get("/v1/weeks/recent")
def recent_weeks(limit: int = Query(10, ge=1, le=52), service=Depends(get_service)):
    return {"items": [summary.to_payload() for summary in service.list_recent_weeks(limit)]}
