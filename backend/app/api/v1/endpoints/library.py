"""/v1/library API endpoints."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.v1.dependencies import get_library_service
from app.core.security import require_current_user_id
from app.schemas.library import LibraryResponse, ReindexResponse
from app.services.library_service import LibraryService

router = APIRouter(prefix="/library", tags=["library"])


@router.get(
    "",
    response_model=LibraryResponse,
    response_model_exclude_none=True,
    summary="取得使用者樂譜庫",
)
async def read_library(
    service: LibraryService = Depends(get_library_service),
    user_id: UUID = Depends(require_current_user_id),
) -> LibraryResponse:
    """列出樂譜與其轉換紀錄，最新上傳者在前。"""

    return LibraryResponse(library=service.list_library(user_id=str(user_id)))


@router.post("/reindex", response_model=ReindexResponse, summary="重建樂譜庫索引")
async def reindex_library(
    service: LibraryService = Depends(get_library_service),
    user_id: UUID = Depends(require_current_user_id),
) -> ReindexResponse:
    """以全量掃描重建使用者的樂譜與轉換索引。"""

    scores, conversions = service.rebuild_indexes(user_id=str(user_id))
    return ReindexResponse(scores=scores, conversions=conversions)
