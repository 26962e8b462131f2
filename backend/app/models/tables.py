"""SQLModel 資料表定義。"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """產生帶有 UTC 時區資訊的當前時間。"""

    return datetime.now(timezone.utc)


# Postgres 使用 JSONB，其餘方言（SQLite 測試）退回一般 JSON
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class KeyValueEntry(SQLModel, table=True):
    """鍵值文件表，存放樂譜、轉換紀錄與使用者索引。"""

    __tablename__ = "kv_store"

    key: str = Field(primary_key=True, description="文件鍵，例如 score_{userId}_{token}")
    value: Any = Field(
        sa_column=Column(JSONDocument, nullable=False),
        description="JSON 文件內容",
    )
    updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False),
        default_factory=_utc_now,
        description="最後寫入時間",
    )
