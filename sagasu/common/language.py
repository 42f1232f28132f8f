"""
Language Detection

Picks the language of user-facing replies from the text the user typed.
Uses langdetect, cross-checked against the Unicode scripts present in the text.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from langdetect import DetectorFactory, LangDetectException, detect_langs

# Seed langdetect for deterministic results
DetectorFactory.seed = 0

# (first codepoint, last codepoint, script, language)
_SCRIPT_RANGES = [
    (0x3040, 0x309F, "Kana", "ja"),      # Hiragana
    (0x30A0, 0x30FF, "Kana", "ja"),      # Katakana
    (0xFF66, 0xFF9F, "Kana", "ja"),      # Half-width Katakana
    (0xAC00, 0xD7AF, "Hangul", "ko"),    # Hangul Syllables
    (0x1100, 0x11FF, "Hangul", "ko"),    # Hangul Jamo
    (0x3130, 0x318F, "Hangul", "ko"),    # Hangul Compatibility Jamo
    (0x4E00, 0x9FFF, "CJK", "zh"),       # CJK Unified Ideographs
    (0x3400, 0x4DBF, "CJK", "zh"),       # CJK Extension A
]


@dataclass(frozen=True)
class LanguageInfo:
    """Detected language information"""
    code: str           # ISO 639-1: "en", "ja", "ko"
    confidence: float   # 0.0~1.0
    script: str         # "Latin", "Kana", "Hangul", "CJK"

    @property
    def is_english(self) -> bool:
        return self.code == "en"


def _script_of(ch: str) -> Tuple[str, Optional[str]]:
    cp = ord(ch)
    for start, end, script, lang in _SCRIPT_RANGES:
        if start <= cp <= end:
            return script, lang
    return "Latin", None


def _detect_script(text: str) -> Tuple[str, Optional[str]]:
    """Dominant script of ``text`` and the language it implies.

    Kana anywhere means Japanese: Japanese sentences mix Kanji and Kana, and
    Chinese never uses Kana.
    """
    counts = {}
    for ch in text:
        if ch.isspace() or not ch.isalnum():
            continue
        script, _ = _script_of(ch)
        counts[script] = counts.get(script, 0) + 1

    if not counts:
        return "Latin", None
    if counts.get("Kana"):
        return "Kana", "ja"

    non_latin = {k: v for k, v in counts.items() if k != "Latin"}
    if not non_latin:
        return "Latin", None

    script = max(non_latin, key=non_latin.get)
    if non_latin[script] < sum(counts.values()) * 0.15:
        return "Latin", None
    return script, {"Hangul": "ko", "CJK": "zh"}[script]


def detect_language(text: str) -> LanguageInfo:
    """Detect language of input text.

    Short texts (<10 chars) rely on the script alone. Latin-only text is
    always reported as English: langdetect misreads short English phrases
    as French, Dutch and so on.
    """
    if not text or not text.strip():
        return LanguageInfo(code="en", confidence=1.0, script="Latin")

    cleaned = text.strip()
    script, script_lang = _detect_script(cleaned)

    if script_lang is None:
        return LanguageInfo(code="en", confidence=0.5, script="Latin")

    if len(cleaned) < 10:
        return LanguageInfo(code=script_lang, confidence=0.6, script=script)

    try:
        results = detect_langs(cleaned)
    except LangDetectException:
        results = []

    if results and results[0].lang.split("-")[0] in ("ja", "ko", "zh"):
        top = results[0]
        code = top.lang.split("-")[0]
        # Kana is conclusive; langdetect sometimes reads Kanji-heavy Japanese as zh
        if script_lang == "ja":
            code = "ja"
        return LanguageInfo(code=code, confidence=round(top.prob, 4), script=script)

    return LanguageInfo(code=script_lang, confidence=0.7, script=script)


def pick_language(text: str, supported: Iterable[str], default: str = "en") -> str:
    """Language code for replying to ``text``, limited to ``supported``."""
    supported = set(supported)
    code = detect_language(text).code
    if code in supported:
        return code
    return default if default in supported else "en"
