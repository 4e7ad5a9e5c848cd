from __future__ import annotations

from datetime import date as dt_date

from fastapi import HTTPException, Request

from scorecard.service import ScorecardService


def get_service(request: Request) -> ScorecardService:
    return request.app.state.service


def parse_day(value: str) -> dt_date:
    try:
        return dt_date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format")
