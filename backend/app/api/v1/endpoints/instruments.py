"""樂器目錄端點。"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app.schemas.instrument import InstrumentListResponse, InstrumentResource
from app.services.instrument_catalog import list_instruments

router = APIRouter(prefix="/instruments", tags=["instruments"])


@router.get("", response_model=InstrumentListResponse, summary="查詢可選樂器")
async def read_instruments(
    category: str | None = Query(default=None, description="依分類篩選"),
) -> InstrumentListResponse:
    items = [InstrumentResource.model_validate(item) for item in list_instruments(category)]
    return InstrumentListResponse(data=items)
