"""API 共用相依性。"""
from __future__ import annotations

from fastapi import Depends

from app.core.database import get_session
from app.repositories.kv_store import KeyValueRepository
from app.repositories.library import LibraryRepository
from app.services.library_service import LibraryService
from app.services.storage_service import StorageService, get_storage_service


def get_library_service(
    session=Depends(get_session),
    storage: StorageService = Depends(get_storage_service),
) -> LibraryService:
    """提供 FastAPI 相依性所需的 LibraryService 實例。"""

    return LibraryService(LibraryRepository(KeyValueRepository(session)), storage)
