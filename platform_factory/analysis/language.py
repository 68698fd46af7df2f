"""Script-based language detection for Arabic / English requests."""

import re
from typing import Literal

Language = Literal["ar", "en", "mixed"]

_ARABIC = re.compile(r"[\u0600-\u06FF]")
_LATIN = re.compile(r"[a-zA-Z]")


def detect_language(text: str) -> Language:
    """
    Classify ``text`` by the scripts it contains.

    Both Arabic and Latin letters → "mixed"; Arabic only → "ar"; anything
    else (including digits, punctuation and the empty string) → "en".
    """
    text = text or ""
    has_arabic = _ARABIC.search(text) is not None
    has_latin = _LATIN.search(text) is not None

    if has_arabic and has_latin:
        return "mixed"
    if has_arabic:
        return "ar"
    return "en"
