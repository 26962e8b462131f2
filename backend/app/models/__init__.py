"""資料庫與文件模型模組。"""
from .documents import Conversion, ConversionStatus, SATBConfig, Score, VoiceSettings
from .tables import KeyValueEntry

__all__ = [
    "Conversion",
    "ConversionStatus",
    "KeyValueEntry",
    "SATBConfig",
    "Score",
    "VoiceSettings",
]
