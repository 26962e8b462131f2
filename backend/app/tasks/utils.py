"""Celery 任務共用工具。"""
from __future__ import annotations

from celery import Celery
from loguru import logger

from app.core.errors import MetadataError
from app.tasks import conversion


def register_tasks(celery: Celery) -> None:
    """將任務邏輯註冊到 Celery 應用。"""

    # 只在回寫中繼資料失敗時重試，完成通知本身對終態紀錄是 no-op
    celery.task(
        name="app.tasks.conversion.run_conversion",
        autoretry_for=(MetadataError,),
        retry_backoff=True,
        max_retries=3,
    )(conversion.run_conversion)

    logger.debug("Registered Celery tasks: {}", list(celery.tasks.keys()))
