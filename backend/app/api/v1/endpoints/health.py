"""系統健康檢查端點。"""
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from app.core.config import settings

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/health", summary="查詢系統健康狀態")
async def read_health() -> dict[str, Any]:
    """部署探針用；不觸碰 Supabase 或資料庫，只回報程序存活與設定的 bucket。"""

    return {
        "status": "healthy",
        "service": settings.project_name,
        "buckets": [settings.score_bucket, settings.audio_bucket, settings.midi_bucket],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
