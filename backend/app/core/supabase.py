"""Supabase Client 工具。"""
from __future__ import annotations

from functools import lru_cache

from loguru import logger
from supabase import Client, create_client

from app.core.config import settings
from app.core.errors import StorageError


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """建立或取得以 service role 身分操作的共用 Supabase Client。"""

    if not settings.supabase_url or not settings.supabase_service_role_key:
        logger.error("Supabase URL 或 Service Role Key 未設定")
        raise StorageError("Storage service is not configured")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)
