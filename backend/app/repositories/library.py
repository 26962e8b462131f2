"""樂譜庫文件存取層，負責鍵名規則與文件轉換。"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from loguru import logger
from pydantic import ValidationError as DocumentValidationError

from app.models.documents import Conversion, ConversionStatus, Score
from app.repositories.kv_store import KeyValueRepository


def score_key(user_id: str, token: str) -> str:
    return f"score_{user_id}_{token}"


def conversion_key(user_id: str, token: str) -> str:
    return f"conversion_{user_id}_{token}"


def user_scores_key(user_id: str) -> str:
    return f"user_scores_{user_id}"


def user_conversions_key(user_id: str) -> str:
    return f"user_conversions_{user_id}"


class LibraryRepository:
    """提供 Score、Conversion 與使用者索引的讀寫介面。"""

    def __init__(self, store: KeyValueRepository) -> None:
        self._store = store

    # Score -----------------------------------------------------------------

    def get_score(self, score_id: str) -> Score | None:
        return self._load(Score, score_id, self._store.get(score_id))

    def save_score(self, score: Score) -> None:
        self._store.set(score.id, score.to_document())

    def delete_score(self, score_id: str) -> None:
        self._store.delete(score_id)

    def get_scores(self, score_ids: Iterable[str]) -> List[Score]:
        """依 ID 順序取得樂譜，缺漏或損毀的項目直接略過。"""

        return self._load_many(Score, score_ids)

    def list_score_ids(self, user_id: str) -> List[str]:
        return list(self._store.get(user_scores_key(user_id)) or [])

    def add_score_to_index(self, user_id: str, score_id: str) -> None:
        self._store.add_to_list(user_scores_key(user_id), score_id)

    def remove_score_from_index(self, user_id: str, score_id: str) -> None:
        self._store.remove_from_list(user_scores_key(user_id), [score_id])

    # Conversion ------------------------------------------------------------

    def get_conversion(self, conversion_id: str) -> Conversion | None:
        return self._load(Conversion, conversion_id, self._store.get(conversion_id))

    def save_conversion(self, conversion: Conversion) -> None:
        self._store.set(conversion.id, conversion.to_document())

    def delete_conversion(self, conversion_id: str) -> None:
        self._store.delete(conversion_id)

    def transition_conversion(self, conversion: Conversion) -> bool:
        """僅在既有紀錄仍為 processing 時寫入，避免覆寫終態。"""

        return self._store.update_if(
            conversion.id,
            lambda document: isinstance(document, dict) and document.get("status") == ConversionStatus.PROCESSING.value,
            conversion.to_document(),
        )

    def get_conversions(self, conversion_ids: Iterable[str]) -> List[Conversion]:
        return self._load_many(Conversion, conversion_ids)

    def list_conversion_ids(self, user_id: str) -> List[str]:
        return list(self._store.get(user_conversions_key(user_id)) or [])

    def add_conversion_to_index(self, user_id: str, conversion_id: str) -> None:
        self._store.add_to_list(user_conversions_key(user_id), conversion_id)

    def remove_conversions_from_index(self, user_id: str, conversion_ids: Iterable[str]) -> None:
        conversion_ids = list(conversion_ids)
        if conversion_ids:
            self._store.remove_from_list(user_conversions_key(user_id), conversion_ids)

    # Reconciliation ----------------------------------------------------------

    def scan_user_scores(self, user_id: str) -> List[Score]:
        """以前綴掃描取得使用者全部樂譜，不依賴索引。"""

        return self._scan(Score, f"score_{user_id}_")

    def scan_user_conversions(self, user_id: str) -> List[Conversion]:
        return self._scan(Conversion, f"conversion_{user_id}_")

    def replace_indexes(self, user_id: str, *, score_ids: List[str], conversion_ids: List[str]) -> None:
        self._store.set(user_scores_key(user_id), score_ids)
        self._store.set(user_conversions_key(user_id), conversion_ids)

    # helpers -----------------------------------------------------------------

    def _load_many(self, model, ids: Iterable[str]) -> list:
        ids = list(dict.fromkeys(ids))
        documents: Dict[str, object] = self._store.mget(ids)
        items = []
        for item_id in ids:
            item = self._load(model, item_id, documents.get(item_id))
            if item is not None:
                items.append(item)
        return items

    def _scan(self, model, prefix: str) -> list:
        items = []
        for key, document in self._store.get_by_prefix(prefix):
            item = self._load(model, key, document)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _load(model, key: str, document: Optional[object]):
        if document is None:
            return None
        try:
            return model.model_validate(document)
        except DocumentValidationError:
            logger.bind(key=key).warning("略過無法解析的文件")
            return None
