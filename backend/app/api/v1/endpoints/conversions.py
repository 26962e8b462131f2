"""/v1/conversions API endpoints."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.v1.dependencies import get_library_service
from app.core.security import require_current_user_id, require_worker_token
from app.models.documents import Conversion
from app.schemas.score import ConversionCompleteRequest, MessageResponse
from app.services.library_service import ConversionOutcome, LibraryService

router = APIRouter(prefix="/conversions", tags=["conversions"])


@router.get(
    "/{conversion_id}",
    response_model=Conversion,
    response_model_exclude_none=True,
    summary="查詢轉換狀態與結果",
)
async def retrieve_conversion(
    conversion_id: str,
    service: LibraryService = Depends(get_library_service),
    user_id: UUID = Depends(require_current_user_id),
) -> Conversion:
    """回傳完整轉換紀錄，包含尚在 processing 的狀態。"""

    return service.get_conversion(user_id=str(user_id), conversion_id=conversion_id)


@router.post(
    "/{conversion_id}/complete",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="外部處理器回報轉換結果",
    dependencies=[Depends(require_worker_token)],
)
async def complete_conversion(
    conversion_id: str,
    payload: ConversionCompleteRequest,
    service: LibraryService = Depends(get_library_service),
) -> MessageResponse:
    """記錄處理結果；終態或不存在的紀錄不會被覆寫。"""

    outcome = ConversionOutcome(
        audio_path=payload.audio_path,
        midi_path=payload.midi_path,
        error=payload.error,
    )
    if not outcome.succeeded and outcome.error is None:
        outcome.error = "Conversion processing failed"
    service.complete_conversion(conversion_id=conversion_id, outcome=outcome)
    return MessageResponse(message="Completion recorded")
