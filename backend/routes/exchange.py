from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from backend.dependencies import get_service, parse_day
from backend.schemas import ImportResponse
from scorecard.exchange import ALL_EXPORT_FILENAME, day_export_filename, week_export_filename

router = APIRouter()


def _download(payload: dict, filename: str) -> JSONResponse:
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/v1/export/day/{day}")
def export_day(day: str, service=Depends(get_service)):
    target = parse_day(day)
    return _download(service.export_day(target), day_export_filename(target))


@router.get("/v1/export/week/{week}")
def export_week(week: str, service=Depends(get_service)):
    target = parse_day(week)
    return _download(service.export_week(target), week_export_filename(target))


@router.get("/v1/export/all")
def export_all(service=Depends(get_service)):
    return _download(service.export_all(), ALL_EXPORT_FILENAME)


@router.post("/v1/import", response_model=ImportResponse)
async def import_payload(file: UploadFile = File(...), service=Depends(get_service)):
    try:
        result = await service.import_from(file.read, wait=False)
    finally:
        await file.close()
    return ImportResponse(
        ok=True,
        status=result.describe(),
        schema_tag=result.schema,
        scope=result.scope,
        days=result.days,
        weeks=result.weeks,
        definitions_added=result.definitions_added,
        focus_date=result.focus_date,
    )
