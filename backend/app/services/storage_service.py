"""Supabase 儲存相關服務。"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Iterable, List

from fastapi import status
from loguru import logger
from supabase import Client

from app.core.config import settings
from app.core.errors import StorageError, ValidationError
from app.core.supabase import get_supabase_client

ALLOWED_SCORE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "application/pdf": "pdf",
}
# 部分瀏覽器會回報非標準的 image/jpg
MIME_ALIASES = {"image/jpg": "image/jpeg"}


@dataclass
class ScoreFile:
    """驗證後的樂譜檔案描述。"""

    file_name: str
    content_type: str
    extension: str
    size: int


class StorageService:
    """封裝與 Supabase Storage 的互動。"""

    def __init__(
        self,
        *,
        client: Client,
        score_bucket: str,
        audio_bucket: str,
        midi_bucket: str,
        base_url: str,
        signed_url_expires: int,
        max_bytes: int,
    ) -> None:
        self._client = client
        self.score_bucket = score_bucket
        self.audio_bucket = audio_bucket
        self.midi_bucket = midi_bucket
        self._base_url = base_url.rstrip('/')
        self._signed_url_expires = signed_url_expires
        self._max_bytes = max_bytes

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    @property
    def buckets(self) -> List[str]:
        return [self.score_bucket, self.audio_bucket, self.midi_bucket]

    def validate_score_file(self, *, file_name: str, content_type: str, size: int) -> ScoreFile:
        """檢查上傳樂譜的類型與大小，回傳正規化後的描述。"""

        mime_type = (content_type or "").split(";", 1)[0].strip().lower()
        mime_type = MIME_ALIASES.get(mime_type, mime_type)
        if mime_type not in ALLOWED_SCORE_TYPES:
            raise ValidationError(
                "Invalid file type. Please upload JPG, PNG, or PDF files only.",
                error_code="UNSUPPORTED_MEDIA_TYPE",
            )
        if size <= 0:
            raise ValidationError("File is empty", error_code="INVALID_FILE_SIZE")
        if size > self._max_bytes:
            limit_mb = self._max_bytes / (1024 * 1024)
            raise ValidationError(
                f"File size exceeds {limit_mb:g}MB limit",
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                error_code="UPLOAD_LIMIT_EXCEEDED",
            )
        return ScoreFile(
            file_name=os.path.basename(file_name.strip()) or "score",
            content_type=mime_type,
            extension=self._extension_for(file_name, mime_type),
            size=size,
        )

    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """上傳物件，不覆蓋既有檔案。"""

        storage = self._client.storage.from_(bucket)
        try:
            storage.upload(path, data, {"content-type": content_type, "upsert": "false"})
        except Exception as exc:  # noqa: B902 - 轉換外部例外為 StorageError
            logger.bind(bucket=bucket, path=path).exception("上傳物件失敗")
            raise StorageError("Failed to upload file") from exc
        return path

    def create_signed_url(self, bucket: str, path: str) -> str:
        """為私有物件建立限時簽名網址。"""

        storage = self._client.storage.from_(bucket)
        try:
            response = storage.create_signed_url(path, self._signed_url_expires)
        except Exception as exc:  # noqa: B902 - 轉換外部例外為 StorageError
            logger.bind(bucket=bucket, path=path).exception("建立簽名網址失敗")
            raise StorageError("Failed to create signed URL") from exc

        signed_url = None
        if isinstance(response, dict):
            signed_url = response.get("signedURL") or response.get("signedUrl") or response.get("signed_url")
        if not signed_url:
            logger.bind(bucket=bucket, path=path).error("Supabase 回傳資料不完整")
            raise StorageError("Failed to create signed URL")
        return self._compose_url(signed_url)

    def remove_objects(self, bucket: str, paths: Iterable[str]) -> None:
        """刪除物件；失敗時拋出 StorageError，由呼叫端決定是否容忍。"""

        paths = [path for path in paths if path]
        if not paths:
            return
        try:
            self._client.storage.from_(bucket).remove(paths)
        except Exception as exc:  # noqa: B902 - 轉換外部例外為 StorageError
            raise StorageError("Failed to remove stored objects") from exc

    def ensure_buckets(self) -> List[str]:
        """建立缺少的私有 bucket，回傳新建立的名稱。"""

        try:
            existing = {bucket.name for bucket in self._client.storage.list_buckets()}
        except Exception as exc:  # noqa: B902 - 轉換外部例外為 StorageError
            raise StorageError("Failed to list buckets") from exc

        created: List[str] = []
        for name in self.buckets:
            if name in existing:
                continue
            try:
                self._client.storage.create_bucket(name, options={"public": False})
            except Exception:  # noqa: B902 - 單一 bucket 失敗不影響其他
                logger.bind(bucket=name).exception("建立 bucket 失敗")
                continue
            logger.info("已建立 bucket {}", name)
            created.append(name)
        return created

    def _extension_for(self, file_name: str, mime_type: str) -> str:
        """優先沿用原檔副檔名，不合法時改用 MIME 對應值。"""

        _, ext = os.path.splitext(file_name.strip())
        ext = ext.lstrip('.').lower()
        if ext and re.fullmatch(r"[a-z0-9]{1,8}", ext):
            return ext
        return ALLOWED_SCORE_TYPES[mime_type]

    def _compose_url(self, signed_url: str) -> str:
        """組合最終可使用的簽名 URL。"""

        if signed_url.startswith("http"):
            return signed_url
        return f"{self._base_url}/storage/v1/{signed_url.lstrip('/')}"


_storage_service: StorageService | None = None


def get_storage_service() -> StorageService:
    """提供 FastAPI 依賴注入的 StorageService。"""

    global _storage_service
    if _storage_service is None:
        client = get_supabase_client()
        _storage_service = StorageService(
            client=client,
            score_bucket=settings.score_bucket,
            audio_bucket=settings.audio_bucket,
            midi_bucket=settings.midi_bucket,
            base_url=settings.supabase_url or "",
            signed_url_expires=settings.signed_url_expires,
            max_bytes=settings.upload_max_bytes,
        )
    return _storage_service
