"""轉換任務：執行處理器並回寫結果。"""
from __future__ import annotations

from typing import Any

from loguru import logger
from sqlmodel import Session

from app.core.database import get_engine
from app.core.errors import JobFailure
from app.tasks.logging import emit_log
from app.tasks.synthesis import ConversionProcessor, ConversionRequest, get_conversion_processor


def build_library_service(session: Session):
    """建立任務專用的 LibraryService（延遲匯入以避免與 Celery app 循環相依）。"""

    from app.repositories.kv_store import KeyValueRepository
    from app.repositories.library import LibraryRepository
    from app.services.library_service import LibraryService
    from app.services.storage_service import get_storage_service

    return LibraryService(LibraryRepository(KeyValueRepository(session)), get_storage_service())


def execute_conversion(request: ConversionRequest, processor: ConversionProcessor | None = None):
    """載入並呼叫處理器，任何失敗都轉為帶 error 的 ConversionOutcome。"""

    from app.services.library_service import ConversionOutcome

    try:
        if processor is None:
            processor = get_conversion_processor()
        artifacts = processor.process(request)
    except JobFailure as exc:
        emit_log("convert", f"處理器回報失敗 conversion={request.conversion_id}", reason=exc.message)
        return ConversionOutcome(error=exc.message)
    except Exception:  # noqa: B902 - 處理器為外部黑盒，失敗一律記錄在 Conversion 上
        logger.bind(conversion_id=request.conversion_id).exception("處理器發生未預期錯誤")
        return ConversionOutcome(error="Conversion processing failed")
    return ConversionOutcome(audio_path=artifacts.audio_path, midi_path=artifacts.midi_path)


def run_conversion(conversion_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    """背景執行轉換，完成後更新 Conversion 狀態。"""

    from app.services.library_service import ConversionOutcome

    emit_log("convert", f"啟動轉換任務 conversion={conversion_id}")
    try:
        request = ConversionRequest.from_payload(conversion_id, payload)
    except (KeyError, TypeError, ValueError):
        logger.bind(conversion_id=conversion_id).exception("任務內容不完整")
        outcome = ConversionOutcome(error="Conversion processing failed")
    else:
        outcome = execute_conversion(request)

    with Session(get_engine()) as session:
        updated = build_library_service(session).complete_conversion(
            conversion_id=conversion_id,
            outcome=outcome,
        )

    status = updated.status.value if updated is not None else "skipped"
    emit_log("convert", f"轉換任務結束 conversion={conversion_id}", status=status)
    return {"conversionId": conversion_id, "status": status}
