"""Locale-aware sort keys for surnames and titles."""

from __future__ import annotations

import unicodedata
from typing import Optional

# Thai vowels written before the consonant they follow in speech
THAI_LEADING_VOWELS = frozenset("\u0e40\u0e41\u0e42\u0e43\u0e44")
# Tone marks and diacritics that only break ties
THAI_SECONDARY = frozenset("\u0e47\u0e48\u0e49\u0e4a\u0e4b\u0e4c\u0e4d\u0e4e")


def _fold(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return stripped.casefold()


def _thai_primary(text: str) -> str:
    chars = [ch for ch in text if ch not in THAI_SECONDARY]
    index = 0
    while index < len(chars) - 1:
        if chars[index] in THAI_LEADING_VOWELS:
            chars[index], chars[index + 1] = chars[index + 1], chars[index]
            index += 2
        else:
            index += 1
    return "".join(chars)


def normalize_name(text: Optional[str]) -> str:
    """Comparison form used to decide whether two surnames are the same."""
    return " ".join(_fold(text or "").split())


def collation_key(text: Optional[str], locale: Optional[str] = None) -> tuple[str, str]:
    """Primary/secondary key for ``text`` under ``locale``.

    Latin text is compared accent- and case-insensitively with the exact form
    as a tie-breaker. Thai locales order by consonant, ignoring leading vowels
    and tone marks at the primary level.
    """
    value = " ".join((text or "").split())
    if locale and locale.lower().startswith("th"):
        # NFKD decomposes SARA AM; Thai ordering is defined on the composed form
        composed = unicodedata.normalize("NFC", value).casefold()
        primary = "".join(ch if "\u0e00" <= ch <= "\u0e7f" else _fold(ch) for ch in composed)
        return _thai_primary(primary), composed
    return _fold(value), value
