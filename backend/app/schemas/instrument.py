"""樂器目錄 Schema。"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict


class InstrumentResource(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    category: str


class InstrumentListResponse(BaseModel):
    data: List[InstrumentResource]
