"""樂譜庫列表相關 Schema。"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from app.models.documents import Conversion, Score


class LibraryScore(Score):
    """附帶轉換紀錄的樂譜。"""

    conversions: List[Conversion] = Field(default_factory=list)


class LibraryResponse(BaseModel):
    library: List[LibraryScore]


class ReindexResponse(BaseModel):
    """索引重建結果。"""

    scores: int
    conversions: int
