"""Best-effort query language detection from script and romanized keywords."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

# Checked in order; more specific scripts first.
_SCRIPTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("ja", re.compile(r"[\u3040-\u309F\u30A0-\u30FF]")),
    ("ko", re.compile(r"[\uAC00-\uD7AF\u1100-\u11FF\u3130-\u318F]")),
    ("zh", re.compile(r"[\u4E00-\u9FFF\u3400-\u4DBF]")),
    ("th", re.compile(r"[\u0E00-\u0E7F]")),
    ("my", re.compile(r"[\u1000-\u109F]")),
    ("km", re.compile(r"[\u1780-\u17FF]")),
    ("lo", re.compile(r"[\u0E80-\u0EFF]")),
    ("ta", re.compile(r"[\u0B80-\u0BFF]")),
    ("te", re.compile(r"[\u0C00-\u0C7F]")),
    ("kn", re.compile(r"[\u0C80-\u0CFF]")),
    ("ml", re.compile(r"[\u0D00-\u0D7F]")),
    ("bn", re.compile(r"[\u0980-\u09FF]")),
    ("gu", re.compile(r"[\u0A80-\u0AFF]")),
    ("pa", re.compile(r"[\u0A00-\u0A7F]")),
    ("or", re.compile(r"[\u0B00-\u0B7F]")),
    ("si", re.compile(r"[\u0D80-\u0DFF]")),
)
_DEVANAGARI = re.compile(r"[\u0900-\u097F]")
_DEVANAGARI_HINTS = frozenset({"mr", "ne"})
_LATE_SCRIPTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("he", re.compile(r"[\u0590-\u05FF]")),
    ("ar", re.compile(r"[\u0600-\u06FF]")),
    ("ru", re.compile(r"[\u0400-\u04FF]")),
    ("el", re.compile(r"[\u0370-\u03FF]")),
    ("am", re.compile(r"[\u1200-\u137F]")),
)

_ROMANIZED: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("hi", re.compile(r"\b(kya|hai|mujhe|chahiye|theek|bahut|nahi|haan|accha)\b", re.IGNORECASE)),
    ("mr", re.compile(r"\b(mala|tumhala|aahe|kay|kasa)\b", re.IGNORECASE)),
)
_HINT = re.compile(r"^[a-z]{2,3}$")


def detect_language(text: object, hint: str | None = None) -> str:
    """Return an ISO-639-1-ish code, or ``"unknown"`` when nothing is conclusive.

    Script ranges win over `hint`; the hint only disambiguates Devanagari and
    fills in for Latin text with no romanized markers.
    """
    if not isinstance(text, str) or not text.strip():
        return UNKNOWN

    for code, pattern in _SCRIPTS:
        if pattern.search(text):
            return code

    if _DEVANAGARI.search(text):
        return hint if hint in _DEVANAGARI_HINTS else "hi"

    for code, pattern in _LATE_SCRIPTS:
        if pattern.search(text):
            return code

    for code, pattern in _ROMANIZED:
        if pattern.search(text):
            logger.debug("[language] romanized %s detected", code)
            return code

    if hint and _HINT.match(hint):
        return hint

    if len(text.strip()) < 10 or text.isascii():
        return "en"
    return UNKNOWN
