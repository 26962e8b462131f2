"""樂譜與轉換紀錄的 JSON 文件模型。"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """產生帶有 UTC 時區資訊的當前時間。"""

    return datetime.now(timezone.utc)


class ConversionStatus(str, Enum):
    """轉換作業狀態，僅允許 processing → completed / failed。"""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ConversionStatus.PROCESSING


class VoiceSettings(BaseModel):
    """單一聲部的靜音、獨奏與音量設定。"""

    enabled: bool = True
    solo: bool = False
    volume: int = Field(default=100, ge=0, le=100)


class SATBConfig(BaseModel):
    """四部合唱聲部設定。多個 solo 聲部由前端把關，這裡不拒絕。"""

    soprano: VoiceSettings = Field(default_factory=VoiceSettings)
    alto: VoiceSettings = Field(default_factory=VoiceSettings)
    tenor: VoiceSettings = Field(default_factory=VoiceSettings)
    bass: VoiceSettings = Field(default_factory=VoiceSettings)

    def solo_voices(self) -> list[str]:
        return [name for name, voice in self if voice.solo]


class Document(BaseModel):
    """可存入鍵值表的文件基底，序列化一律使用 camelCase。"""

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Score(Document):
    """使用者上傳的一份樂譜檔案。"""

    id: str
    user_id: str = Field(alias="userId")
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")
    file_size: int = Field(alias="fileSize", ge=0)
    file_path: str = Field(alias="filePath")
    uploaded_at: datetime = Field(alias="uploadedAt")
    url: str = ""


class Conversion(Document):
    """針對單一樂譜的一次合成作業。"""

    id: str
    score_id: str = Field(alias="scoreId")
    user_id: str = Field(alias="userId")
    instruments: List[str] = Field(default_factory=list)
    satb_config: Optional[SATBConfig] = Field(default=None, alias="satbConfig")
    tempo: int = Field(default=120, ge=40, le=240)
    status: ConversionStatus = ConversionStatus.PROCESSING
    created_at: datetime = Field(alias="createdAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    audio_path: Optional[str] = Field(default=None, alias="audioPath")
    midi_path: Optional[str] = Field(default=None, alias="midiPath")
    audio_url: Optional[str] = Field(default=None, alias="audioUrl")
    midi_url: Optional[str] = Field(default=None, alias="midiUrl")
    error: Optional[str] = None

    def mark_completed(
        self,
        *,
        audio_path: str,
        midi_path: str,
        audio_url: str,
        midi_url: str,
    ) -> "Conversion":
        """回傳進入 completed 狀態後的新紀錄。"""

        self._ensure_processing()
        return self.model_copy(
            update={
                "status": ConversionStatus.COMPLETED,
                "audio_path": audio_path,
                "midi_path": midi_path,
                "audio_url": audio_url,
                "midi_url": midi_url,
                "completed_at": utc_now(),
            }
        )

    def mark_failed(self, message: str) -> "Conversion":
        """回傳進入 failed 狀態後的新紀錄。"""

        self._ensure_processing()
        return self.model_copy(
            update={
                "status": ConversionStatus.FAILED,
                "error": message,
                "completed_at": utc_now(),
            }
        )

    def _ensure_processing(self) -> None:
        if self.status.is_terminal:
            raise ValueError(f"conversion {self.id} already {self.status.value}")
