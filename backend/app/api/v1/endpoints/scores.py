"""/v1/scores API endpoints."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status

from app.api.v1.dependencies import get_library_service
from app.core.errors import ValidationError
from app.core.security import require_current_user_id
from app.schemas.score import (
    ConversionAcceptedResponse,
    ConversionCreateRequest,
    MessageResponse,
    ScoreUploadResponse,
)
from app.services.library_service import LibraryService

router = APIRouter(prefix="/scores", tags=["scores"])


@router.post(
    "/upload",
    response_model=ScoreUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="上傳樂譜圖片或 PDF",
)
async def upload_score(
    file: UploadFile | None = File(default=None),
    service: LibraryService = Depends(get_library_service),
    user_id: UUID = Depends(require_current_user_id),
) -> ScoreUploadResponse:
    """儲存樂譜檔案並建立 Score 紀錄。"""

    if file is None:
        raise ValidationError("No file provided")

    # 最多多讀一個位元組，足以判斷是否超過上限
    data = await file.read(service.upload_limit + 1)
    result = service.upload_score(
        user_id=str(user_id),
        file_name=file.filename or "",
        content_type=file.content_type or "",
        data=data,
    )
    return ScoreUploadResponse(score_id=result.score_id, url=result.url, metadata=result.score)


@router.post(
    "/{score_id}/convert",
    response_model=ConversionAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="建立轉換作業",
)
async def convert_score(
    score_id: str,
    payload: ConversionCreateRequest,
    service: LibraryService = Depends(get_library_service),
    user_id: UUID = Depends(require_current_user_id),
) -> ConversionAcceptedResponse:
    """建立 processing 狀態的轉換並立即回應，結果請以轉換 ID 查詢。"""

    conversion = service.start_conversion(
        user_id=str(user_id),
        score_id=score_id,
        instruments=payload.instruments,
        satb_config=payload.satb_config,
        tempo=payload.tempo,
    )
    return ConversionAcceptedResponse(conversion_id=conversion.id, status=conversion.status)


@router.delete("/{score_id}", response_model=MessageResponse, summary="刪除樂譜與其轉換")
async def delete_score(
    score_id: str,
    service: LibraryService = Depends(get_library_service),
    user_id: UUID = Depends(require_current_user_id),
) -> MessageResponse:
    """串聯刪除樂譜、轉換紀錄與儲存物件。"""

    service.delete_score(user_id=str(user_id), score_id=score_id)
    return MessageResponse(message="Score and all conversions deleted successfully")
