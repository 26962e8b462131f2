"""轉換處理器介面與預設的佔位實作。"""
from __future__ import annotations

from dataclasses import dataclass, field
from importlib import import_module
from typing import Any, Dict, List, Optional, Protocol

from app.core.config import settings
from app.tasks.logging import emit_log


@dataclass
class ConversionRequest:
    """交給處理器的作業內容。"""

    conversion_id: str
    score_id: str
    user_id: str
    score_path: Optional[str]
    instruments: List[str] = field(default_factory=list)
    satb_config: Optional[Dict[str, Any]] = None
    tempo: int = 120

    @classmethod
    def from_payload(cls, conversion_id: str, payload: Dict[str, Any]) -> "ConversionRequest":
        return cls(
            conversion_id=conversion_id,
            score_id=payload["scoreId"],
            user_id=payload["userId"],
            score_path=payload.get("scorePath"),
            instruments=list(payload.get("instruments") or []),
            satb_config=payload.get("satbConfig"),
            tempo=int(payload.get("tempo") or 120),
        )


@dataclass
class ConversionArtifacts:
    """成功產出的音訊與 MIDI 物件路徑。"""

    audio_path: str
    midi_path: str


class ConversionProcessor(Protocol):
    """OMR 與合成的黑盒介面；失敗時拋出 JobFailure。"""

    def process(self, request: ConversionRequest) -> ConversionArtifacts:
        ...


class PlaceholderProcessor:
    """不做辨識與合成，只推導產出路徑的佔位處理器。"""

    def process(self, request: ConversionRequest) -> ConversionArtifacts:
        emit_log(
            "synthesis",
            f"佔位處理器產生路徑 conversion={request.conversion_id}",
            instruments=request.instruments,
            tempo=request.tempo,
        )
        # TODO: 串接 OMR（MusicXML）與合成引擎，將實際檔案上傳至 audio/midi bucket
        return ConversionArtifacts(
            audio_path=f"{request.user_id}/{request.conversion_id}.mp3",
            midi_path=f"{request.user_id}/{request.conversion_id}.mid",
        )


def get_conversion_processor(path: str | None = None) -> ConversionProcessor:
    """依 `module:Class` 設定載入處理器。"""

    target = path or settings.conversion_processor
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"無效的處理器設定: {target}")
    factory = getattr(import_module(module_name), attribute)
    return factory()
