"""鍵值文件資料存取層。"""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Tuple

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import MetadataError
from app.models.tables import KeyValueEntry, _utc_now


def locked_select(key: str):
    """以 FOR UPDATE 鎖定單一文件列，直到交易結束；一律重新載入列內容。"""

    return select(KeyValueEntry).where(KeyValueEntry.key == key).with_for_update().execution_options(populate_existing=True)


class KeyValueRepository:
    """以 kv_store 資料表實作的 JSON 文件儲存。"""

    def __init__(self, session: Session) -> None:
        """使用既有的 Session 初始化儲存庫。"""

        self._session = session

    @contextmanager
    def _guard(self, operation: str, key: str | None = None) -> Iterator[None]:
        """將資料庫例外轉換為 MetadataError 並回滾交易。"""

        try:
            yield
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.bind(operation=operation, key=key).exception("中繼資料存取失敗")
            raise MetadataError() from exc

    def get(self, key: str) -> Any | None:
        """取得單一文件，不存在時回傳 None。"""

        with self._guard("get", key):
            entry = self._session.get(KeyValueEntry, key)
            return None if entry is None else entry.value

    def set(self, key: str, value: Any) -> None:
        """寫入（覆蓋）單一文件。"""

        with self._guard("set", key):
            entry = self._session.get(KeyValueEntry, key)
            if entry is None:
                self._session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
                entry.updated_at = _utc_now()
            self._session.commit()

    def delete(self, key: str) -> None:
        """刪除單一文件，不存在時忽略。"""

        with self._guard("delete", key):
            entry = self._session.get(KeyValueEntry, key)
            if entry is not None:
                self._session.delete(entry)
                self._session.commit()

    def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        """一次取得多筆文件，缺少的鍵不會出現在結果中。"""

        keys = list(dict.fromkeys(keys))
        if not keys:
            return {}
        with self._guard("mget"):
            statement = select(KeyValueEntry).where(KeyValueEntry.key.in_(keys))
            return {entry.key: entry.value for entry in self._session.exec(statement).all()}

    def mdelete(self, keys: Iterable[str]) -> None:
        """一次刪除多筆文件。"""

        keys = list(keys)
        if not keys:
            return
        with self._guard("mdelete"):
            statement = select(KeyValueEntry).where(KeyValueEntry.key.in_(keys))
            for entry in self._session.exec(statement).all():
                self._session.delete(entry)
            self._session.commit()

    def get_by_prefix(self, prefix: str) -> List[Tuple[str, Any]]:
        """列出鍵以 prefix 開頭的文件，依鍵排序。"""

        with self._guard("get_by_prefix", prefix):
            statement = (
                select(KeyValueEntry)
                .where(KeyValueEntry.key.startswith(prefix, autoescape=True))
                .order_by(KeyValueEntry.key.asc())
            )
            return [(entry.key, entry.value) for entry in self._session.exec(statement).all()]

    def add_to_list(self, key: str, item: str) -> List[str]:
        """在鎖定列的交易中將 item 加入清單（已存在則不重複）。"""

        with self._guard("add_to_list", key):
            try:
                return self._mutate_list(key, lambda items: items if item in items else [*items, item])
            except IntegrityError:
                # 另一個寫入者剛建立同一個鍵，重試後改走更新路徑
                self._session.rollback()
                return self._mutate_list(key, lambda items: items if item in items else [*items, item])

    def remove_from_list(self, key: str, items: Iterable[str]) -> List[str]:
        """在鎖定列的交易中自清單移除指定項目。"""

        removed = set(items)
        with self._guard("remove_from_list", key):
            return self._mutate_list(key, lambda current: [value for value in current if value not in removed])

    def update_if(self, key: str, predicate: Callable[[Any], bool], value: Any) -> bool:
        """鎖定既有文件，predicate 成立時才覆寫；回傳是否寫入。"""

        with self._guard("update_if", key):
            entry = self._session.exec(locked_select(key)).first()
            if entry is None or not predicate(entry.value):
                self._session.rollback()
                return False
            entry.value = value
            entry.updated_at = _utc_now()
            self._session.commit()
            return True

    def _mutate_list(self, key: str, mutate) -> List[str]:
        entry = self._session.exec(locked_select(key)).first()
        current = list(entry.value or []) if entry is not None else []
        updated = mutate(current)
        if entry is None:
            if updated:
                self._session.add(KeyValueEntry(key=key, value=updated))
        elif updated != current:
            entry.value = updated
            entry.updated_at = _utc_now()
        self._session.commit()
        return updated
