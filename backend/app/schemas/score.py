"""樂譜與轉換作業的 Pydantic Schema。"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.documents import Conversion, ConversionStatus, SATBConfig, Score


class ScoreUploadResponse(BaseModel):
    """上傳樂譜後的回應。"""

    model_config = ConfigDict(populate_by_name=True)

    score_id: str = Field(serialization_alias="scoreId")
    url: str
    metadata: Score


class ConversionCreateRequest(BaseModel):
    """建立轉換作業的請求負載，未提供的欄位套用預設值。"""

    model_config = ConfigDict(populate_by_name=True)

    instruments: Optional[List[str]] = None
    satb_config: Optional[SATBConfig] = Field(default=None, validation_alias="satbConfig")
    tempo: Optional[int] = None


class ConversionAcceptedResponse(BaseModel):
    """轉換已受理，結果需另行查詢。"""

    conversion_id: str = Field(serialization_alias="conversionId")
    status: ConversionStatus = ConversionStatus.PROCESSING
    message: str = "Conversion started. Check status using the conversion ID."


class ConversionCompleteRequest(BaseModel):
    """外部處理器回報的結果：成功帶路徑，失敗帶錯誤訊息。"""

    model_config = ConfigDict(populate_by_name=True)

    audio_path: Optional[str] = Field(default=None, validation_alias="audioPath")
    midi_path: Optional[str] = Field(default=None, validation_alias="midiPath")
    error: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


__all__ = [
    "Conversion",
    "ConversionAcceptedResponse",
    "ConversionCompleteRequest",
    "ConversionCreateRequest",
    "MessageResponse",
    "ScoreUploadResponse",
]
