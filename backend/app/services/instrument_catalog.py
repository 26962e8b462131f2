"""樂器目錄：提供可選樂器清單與 ID 驗證。"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

CATEGORIES = ("strings", "woodwinds", "brass", "percussion", "keyboards", "voices")


@dataclass(frozen=True)
class Instrument:
    id: str
    name: str
    category: str


INSTRUMENTS: List[Instrument] = [
    Instrument("violin", "Violin", "strings"),
    Instrument("viola", "Viola", "strings"),
    Instrument("cello", "Cello", "strings"),
    Instrument("double-bass", "Double Bass", "strings"),
    Instrument("harp", "Harp", "strings"),
    Instrument("guitar", "Guitar", "strings"),
    Instrument("flute", "Flute", "woodwinds"),
    Instrument("piccolo", "Piccolo", "woodwinds"),
    Instrument("oboe", "Oboe", "woodwinds"),
    Instrument("english-horn", "English Horn", "woodwinds"),
    Instrument("clarinet", "Clarinet", "woodwinds"),
    Instrument("bass-clarinet", "Bass Clarinet", "woodwinds"),
    Instrument("bassoon", "Bassoon", "woodwinds"),
    Instrument("contrabassoon", "Contrabassoon", "woodwinds"),
    Instrument("saxophone", "Saxophone", "woodwinds"),
    Instrument("trumpet", "Trumpet", "brass"),
    Instrument("french-horn", "French Horn", "brass"),
    Instrument("trombone", "Trombone", "brass"),
    Instrument("tuba", "Tuba", "brass"),
    Instrument("euphonium", "Euphonium", "brass"),
    # 有音高打擊
    Instrument("timpani", "Timpani", "percussion"),
    Instrument("xylophone", "Xylophone", "percussion"),
    Instrument("marimba", "Marimba", "percussion"),
    Instrument("vibraphone", "Vibraphone", "percussion"),
    Instrument("glockenspiel", "Glockenspiel", "percussion"),
    Instrument("tubular-bells", "Tubular Bells", "percussion"),
    # 無音高打擊
    Instrument("snare-drum", "Snare Drum", "percussion"),
    Instrument("bass-drum", "Bass Drum", "percussion"),
    Instrument("cymbals", "Cymbals", "percussion"),
    Instrument("tambourine", "Tambourine", "percussion"),
    Instrument("tam-tam", "Tam-Tam (Gong)", "percussion"),
    Instrument("cowbell", "Cowbell", "percussion"),
    Instrument("triangle", "Triangle", "percussion"),
    Instrument("wood-block", "Wood Block", "percussion"),
    Instrument("claves", "Claves", "percussion"),
    Instrument("castanets", "Castanets", "percussion"),
    Instrument("maracas", "Maracas", "percussion"),
    Instrument("guiro", "Guiro", "percussion"),
    Instrument("cabasa", "Cabasa", "percussion"),
    Instrument("shaker", "Shaker", "percussion"),
    Instrument("bongos", "Bongos", "percussion"),
    Instrument("congas", "Congas", "percussion"),
    Instrument("toms", "Tom-Toms", "percussion"),
    Instrument("piano", "Piano", "keyboards"),
    Instrument("organ", "Organ", "keyboards"),
    Instrument("harpsichord", "Harpsichord", "keyboards"),
    Instrument("celesta", "Celesta", "keyboards"),
    Instrument("soprano", "Soprano", "voices"),
    Instrument("alto", "Alto", "voices"),
    Instrument("tenor", "Tenor", "voices"),
    Instrument("bass-voice", "Bass", "voices"),
    Instrument("choir", "Mixed Choir", "voices"),
]

_BY_ID: Dict[str, Instrument] = {instrument.id: instrument for instrument in INSTRUMENTS}


def list_instruments(category: str | None = None) -> List[Instrument]:
    """列出樂器，可依分類篩選。"""

    if category is None:
        return list(INSTRUMENTS)
    return [instrument for instrument in INSTRUMENTS if instrument.category == category]


def get_instrument(instrument_id: str) -> Instrument | None:
    return _BY_ID.get(instrument_id)


def unknown_instruments(instrument_ids: Iterable[str]) -> List[str]:
    """回傳目錄中不存在的樂器 ID。"""

    return [item for item in instrument_ids if item not in _BY_ID]
