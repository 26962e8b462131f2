"""樂譜庫核心服務：上傳、轉換、狀態、列表與串聯刪除。"""
from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loguru import logger

from app.core.celery_app import celery_app
from app.core.errors import DispatchError, NotFoundOrForbiddenError, StorageError, ValidationError
from app.models.documents import Conversion, ConversionStatus, SATBConfig, Score, utc_now
from app.repositories.library import LibraryRepository, conversion_key, score_key
from app.schemas.library import LibraryScore
from app.services.instrument_catalog import unknown_instruments
from app.services.storage_service import StorageService

CONVERSION_TASK = "app.tasks.conversion.run_conversion"
DEFAULT_TEMPO = 120
MIN_TEMPO = 40
MAX_TEMPO = 240


def new_token() -> str:
    """產生 `{epoch 毫秒}-{隨機碼}`，同一毫秒內也不會碰撞。"""

    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


@dataclass
class UploadResult:
    score_id: str
    url: str
    score: Score


@dataclass
class ConversionOutcome:
    """處理器產出：成功時有 audio/midi 路徑，失敗時有 error。"""

    audio_path: Optional[str] = None
    midi_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and bool(self.audio_path) and bool(self.midi_path)


class LibraryService:
    """管理 Score 與 Conversion 的生命週期與擁有權檢查。"""

    def __init__(self, repository: LibraryRepository, storage: StorageService) -> None:
        self._repository = repository
        self._storage = storage

    @property
    def upload_limit(self) -> int:
        """單一樂譜檔的位元組上限。"""

        return self._storage.max_bytes

    # 上傳 ------------------------------------------------------------------

    def upload_score(
        self,
        *,
        user_id: str,
        file_name: str,
        content_type: str,
        data: bytes,
    ) -> UploadResult:
        """儲存樂譜檔並建立 Score；依序上傳、寫入文件、更新索引。"""

        score_file = self._storage.validate_score_file(
            file_name=file_name,
            content_type=content_type,
            size=len(data),
        )
        token = new_token()
        file_path = f"{user_id}/{token}.{score_file.extension}"

        self._storage.upload_object(self._storage.score_bucket, file_path, data, score_file.content_type)
        url = self._storage.create_signed_url(self._storage.score_bucket, file_path)

        score = Score(
            id=score_key(user_id, token),
            user_id=user_id,
            file_name=score_file.file_name,
            file_type=score_file.content_type,
            file_size=score_file.size,
            file_path=file_path,
            uploaded_at=utc_now(),
            url=url,
        )
        self._repository.save_score(score)
        self._repository.add_score_to_index(user_id, score.id)

        logger.bind(user_id=user_id, score_id=score.id).info("樂譜上傳完成")
        return UploadResult(score_id=score.id, url=url, score=score)

    # 轉換 ------------------------------------------------------------------

    def start_conversion(
        self,
        *,
        user_id: str,
        score_id: str,
        instruments: Optional[List[str]] = None,
        satb_config: Optional[SATBConfig] = None,
        tempo: Optional[int] = None,
    ) -> Conversion:
        """建立 processing 狀態的 Conversion 並派送背景任務，不等待結果。"""

        score = self._get_owned_score(user_id=user_id, score_id=score_id)

        instruments = list(instruments or [])
        tempo = DEFAULT_TEMPO if tempo is None else tempo
        self._validate_configuration(instruments=instruments, satb_config=satb_config, tempo=tempo)

        conversion = Conversion(
            id=conversion_key(user_id, new_token()),
            score_id=score.id,
            user_id=user_id,
            instruments=instruments,
            satb_config=satb_config,
            tempo=tempo,
            status=ConversionStatus.PROCESSING,
            created_at=utc_now(),
        )
        self._repository.save_conversion(conversion)
        self._repository.add_conversion_to_index(user_id, conversion.id)

        task_payload: Dict[str, Any] = {
            "scoreId": score.id,
            "userId": user_id,
            "scorePath": score.file_path,
            "instruments": list(conversion.instruments),
            "satbConfig": satb_config.model_dump() if satb_config is not None else None,
            "tempo": conversion.tempo,
        }
        log = logger.bind(user_id=user_id, conversion_id=conversion.id)
        try:
            celery_app.send_task(CONVERSION_TASK, args=(conversion.id, task_payload))
        except Exception as exc:  # noqa: B902 - broker 例外型別依傳輸層而異
            log.exception("派送轉換任務失敗")
            # 紀錄已寫入索引，必須進入終態，否則會永遠停在 processing
            self._repository.transition_conversion(conversion.mark_failed("Conversion could not be queued"))
            raise DispatchError() from exc

        log.info("轉換作業已派送")
        return conversion

    def complete_conversion(self, *, conversion_id: str, outcome: ConversionOutcome) -> Conversion | None:
        """寫入轉換結果；只有 processing 狀態的紀錄會被更新。"""

        log = logger.bind(conversion_id=conversion_id)
        conversion = self._repository.get_conversion(conversion_id)
        if conversion is None:
            log.warning("轉換紀錄不存在，忽略完成通知")
            return None
        if conversion.status.is_terminal:
            log.warning("轉換紀錄已是 {}，忽略完成通知", conversion.status.value)
            return None

        if self._repository.get_score(conversion.score_id) is None:
            # 樂譜已在處理期間被刪除，清掉孤兒紀錄與產出
            log.warning("所屬樂譜已刪除，移除孤兒轉換紀錄")
            self._discard_conversion(conversion, outcome)
            return None

        if outcome.succeeded:
            try:
                audio_url = self._storage.create_signed_url(self._storage.audio_bucket, outcome.audio_path)
                midi_url = self._storage.create_signed_url(self._storage.midi_bucket, outcome.midi_path)
            except StorageError:
                updated = conversion.mark_failed("Conversion processing failed")
            else:
                updated = conversion.mark_completed(
                    audio_path=outcome.audio_path,
                    midi_path=outcome.midi_path,
                    audio_url=audio_url,
                    midi_url=midi_url,
                )
        else:
            updated = conversion.mark_failed(outcome.error or "Conversion processing failed")

        if not self._repository.transition_conversion(updated):
            # 讀取後已有另一個完成通知寫入終態
            log.warning("轉換紀錄已被其他完成通知更新，放棄寫入")
            return None
        self._repository.add_conversion_to_index(updated.user_id, updated.id)
        log.info("轉換作業結束 status={}", updated.status.value)
        return updated

    def get_conversion(self, *, user_id: str, conversion_id: str) -> Conversion:
        """取得使用者擁有的轉換紀錄。"""

        conversion = self._repository.get_conversion(conversion_id)
        if conversion is None or conversion.user_id != user_id:
            raise NotFoundOrForbiddenError("Conversion")
        return conversion

    # 列表 ------------------------------------------------------------------

    def list_library(self, *, user_id: str) -> List[LibraryScore]:
        """組合使用者樂譜與其轉換紀錄，依上傳時間新到舊排序。"""

        scores = [
            score
            for score in self._repository.get_scores(self._repository.list_score_ids(user_id))
            if score.user_id == user_id
        ]
        conversions = [
            conversion
            for conversion in self._repository.get_conversions(self._repository.list_conversion_ids(user_id))
            if conversion.user_id == user_id
        ]

        conversions_by_score: Dict[str, List[Conversion]] = {}
        for conversion in conversions:
            conversions_by_score.setdefault(conversion.score_id, []).append(conversion)

        library = [
            LibraryScore(**score.model_dump(), conversions=conversions_by_score.get(score.id, []))
            for score in scores
        ]
        library.sort(key=lambda item: (item.uploaded_at, item.id), reverse=True)
        return library

    # 刪除 ------------------------------------------------------------------

    def delete_score(self, *, user_id: str, score_id: str) -> None:
        """刪除樂譜與其所有轉換；儲存體清除失敗只記錄不中斷。"""

        score = self._get_owned_score(user_id=user_id, score_id=score_id)
        log = logger.bind(user_id=user_id, score_id=score_id)

        self._remove_blob(self._storage.score_bucket, score.file_path)

        # 索引可能缺漏，再以前綴掃描補上同一樂譜的轉換
        indexed = self._repository.get_conversions(self._repository.list_conversion_ids(user_id))
        scanned = self._repository.scan_user_conversions(user_id)
        conversions = list(
            {
                conversion.id: conversion
                for conversion in [*indexed, *scanned]
                if conversion.score_id == score_id
            }.values()
        )
        for conversion in conversions:
            self._remove_blob(self._storage.audio_bucket, conversion.audio_path)
            self._remove_blob(self._storage.midi_bucket, conversion.midi_path)
            self._repository.delete_conversion(conversion.id)

        self._repository.remove_conversions_from_index(user_id, [conversion.id for conversion in conversions])
        self._repository.delete_score(score_id)
        self._repository.remove_score_from_index(user_id, score_id)

        log.info("樂譜已刪除，連同 {} 筆轉換紀錄", len(conversions))

    # 索引重建 --------------------------------------------------------------

    def rebuild_indexes(self, *, user_id: str) -> tuple[int, int]:
        """以全量掃描重建使用者索引，回傳 (樂譜數, 轉換數)。"""

        scores = sorted(self._repository.scan_user_scores(user_id), key=lambda item: (item.uploaded_at, item.id))
        score_ids = {score.id for score in scores}
        conversions = sorted(
            (
                conversion
                for conversion in self._repository.scan_user_conversions(user_id)
                if conversion.score_id in score_ids
            ),
            key=lambda item: (item.created_at, item.id),
        )
        self._repository.replace_indexes(
            user_id,
            score_ids=[score.id for score in scores],
            conversion_ids=[conversion.id for conversion in conversions],
        )
        logger.bind(user_id=user_id).info("索引已重建 scores={} conversions={}", len(scores), len(conversions))
        return len(scores), len(conversions)

    # helpers ---------------------------------------------------------------

    def _get_owned_score(self, *, user_id: str, score_id: str) -> Score:
        score = self._repository.get_score(score_id)
        if score is None or score.user_id != user_id:
            raise NotFoundOrForbiddenError("Score")
        return score

    def _validate_configuration(
        self,
        *,
        instruments: List[str],
        satb_config: Optional[SATBConfig],
        tempo: int,
    ) -> None:
        if not instruments and satb_config is None:
            raise ValidationError("Select at least one instrument or provide a choir (SATB) configuration")
        unknown = unknown_instruments(instruments)
        if unknown:
            raise ValidationError(f"Unknown instruments: {', '.join(unknown)}")
        if not MIN_TEMPO <= tempo <= MAX_TEMPO:
            raise ValidationError(f"Tempo must be between {MIN_TEMPO} and {MAX_TEMPO} BPM")

    def _remove_blob(self, bucket: str, path: Optional[str]) -> None:
        if not path:
            return
        try:
            self._storage.remove_objects(bucket, [path])
        except StorageError:
            logger.bind(bucket=bucket, path=path).exception("刪除儲存物件失敗，繼續清除中繼資料")

    def _discard_conversion(self, conversion: Conversion, outcome: ConversionOutcome) -> None:
        self._remove_blob(self._storage.audio_bucket, outcome.audio_path)
        self._remove_blob(self._storage.midi_bucket, outcome.midi_path)
        self._repository.delete_conversion(conversion.id)
        self._repository.remove_conversions_from_index(conversion.user_id, [conversion.id])
