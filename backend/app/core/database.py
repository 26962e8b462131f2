"""資料庫連線與 Session 工具。"""
from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """建立共用 engine，首次使用時才連線。"""

    connect_args: dict[str, object] = {}
    if settings.database_url.startswith("sqlite"):
        # SQLite 需允許跨執行緒使用（FastAPI threadpool 與 Celery worker）
        connect_args["check_same_thread"] = False
    return create_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def get_session() -> Iterator[Session]:
    """提供資料庫 Session 供 FastAPI 相依注入使用。"""

    with Session(get_engine()) as session:
        yield session


__all__ = ["get_engine", "get_session", "SQLModel", "Session"]
