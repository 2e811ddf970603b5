"""
Cardmarket Offer Finder — Condition / Language / Edition Lookup Tables

Listing rows describe their attributes in whatever language the page was
served in ("Near Mint", "Anglais", "1ère édition", ...). These tables map a
normalized lowercase phrase to one canonical value. They are plain data:
adding a locale or a synonym means adding entries, not code.

Free-text inference matches whole words only, so "po" never fires inside
"pokemon". When several phrases occur in the same text, the earliest one
wins and, at equal position, the longest one.
"""

from __future__ import annotations

import re
import unicodedata
from enum import Enum
from functools import lru_cache
from typing import NamedTuple

import structlog

logger = structlog.get_logger(__name__)


class ConditionGrade(str, Enum):
    """Canonical condition codes, Cardmarket scale plus the US MP/HP grades."""
    MINT = "MT"
    NEAR_MINT = "NM"
    EXCELLENT = "EX"
    GOOD = "GD"
    LIGHT_PLAYED = "LP"
    MODERATELY_PLAYED = "MP"
    PLAYED = "PL"
    HEAVILY_PLAYED = "HP"
    POOR = "PO"


class KeywordTables(NamedTuple):
    """Lookup tables used to read offer attributes out of free text."""
    conditions: dict[str, str]
    languages: dict[str, str]
    first_edition_phrases: tuple[str, ...]


# ---------------------------------------------------------------------------
# Default tables
# ---------------------------------------------------------------------------

CONDITION_KEYWORDS: dict[str, str] = {
    "mint": ConditionGrade.MINT.value,
    "mt": ConditionGrade.MINT.value,
    "near mint": ConditionGrade.NEAR_MINT.value,
    "near-mint": ConditionGrade.NEAR_MINT.value,
    "nm": ConditionGrade.NEAR_MINT.value,
    "quasi neuf": ConditionGrade.NEAR_MINT.value,
    "excellent": ConditionGrade.EXCELLENT.value,
    "exc": ConditionGrade.EXCELLENT.value,
    "good": ConditionGrade.GOOD.value,
    "gd": ConditionGrade.GOOD.value,
    "bon état": ConditionGrade.GOOD.value,
    "light played": ConditionGrade.LIGHT_PLAYED.value,
    "lightly played": ConditionGrade.LIGHT_PLAYED.value,
    "leicht bespielt": ConditionGrade.LIGHT_PLAYED.value,
    "lp": ConditionGrade.LIGHT_PLAYED.value,
    "moderately played": ConditionGrade.MODERATELY_PLAYED.value,
    "mp": ConditionGrade.MODERATELY_PLAYED.value,
    "played": ConditionGrade.PLAYED.value,
    "bespielt": ConditionGrade.PLAYED.value,
    "joué": ConditionGrade.PLAYED.value,
    "pl": ConditionGrade.PLAYED.value,
    "heavily played": ConditionGrade.HEAVILY_PLAYED.value,
    "stark bespielt": ConditionGrade.HEAVILY_PLAYED.value,
    "hp": ConditionGrade.HEAVILY_PLAYED.value,
    "poor": ConditionGrade.POOR.value,
    "damaged": ConditionGrade.POOR.value,
    "mauvais état": ConditionGrade.POOR.value,
    "po": ConditionGrade.POOR.value,
}

LANGUAGE_KEYWORDS: dict[str, str] = {
    "english": "English",
    "anglais": "English",
    "englisch": "English",
    "inglese": "English",
    "inglés": "English",
    "ingles": "English",
    "french": "French",
    "français": "French",
    "francais": "French",
    "französisch": "French",
    "francese": "French",
    "francés": "French",
    "german": "German",
    "deutsch": "German",
    "allemand": "German",
    "tedesco": "German",
    "alemán": "German",
    "italian": "Italian",
    "italiano": "Italian",
    "italien": "Italian",
    "italienisch": "Italian",
    "spanish": "Spanish",
    "español": "Spanish",
    "espagnol": "Spanish",
    "spanisch": "Spanish",
    "spagnolo": "Spanish",
    "portuguese": "Portuguese",
    "português": "Portuguese",
    "portugais": "Portuguese",
    "japanese": "Japanese",
    "japonais": "Japanese",
    "japanisch": "Japanese",
    "giapponese": "Japanese",
    "japonés": "Japanese",
    "korean": "Korean",
    "coréen": "Korean",
    "koreanisch": "Korean",
    "s-chinese": "Simplified Chinese",
    "simplified chinese": "Simplified Chinese",
    "chinois simplifié": "Simplified Chinese",
    "t-chinese": "Traditional Chinese",
    "traditional chinese": "Traditional Chinese",
    "chinois traditionnel": "Traditional Chinese",
    "russian": "Russian",
    "russe": "Russian",
    "russisch": "Russian",
}

FIRST_EDITION_PHRASES: tuple[str, ...] = (
    "1st edition",
    "first edition",
    "1st ed",
    "first ed",
    "première édition",
    "premiere edition",
    "1ère édition",
    "1ere edition",
    "erste auflage",
    "1. auflage",
    "prima edizione",
    "primera edición",
)

DEFAULT_KEYWORDS = KeywordTables(
    conditions=CONDITION_KEYWORDS,
    languages=LANGUAGE_KEYWORDS,
    first_edition_phrases=FIRST_EDITION_PHRASES,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize_phrase(text: str) -> str:
    """Lowercase, NFC-normalize and collapse whitespace."""
    text = unicodedata.normalize("NFC", text or "")
    return " ".join(text.lower().split())


@lru_cache(maxsize=512)
def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)")


def _find_keyword(text: str, table: dict[str, str]) -> str | None:
    haystack = normalize_phrase(text)
    if not haystack:
        return None

    best: tuple[int, int, str] | None = None
    for phrase, canonical in table.items():
        match = _phrase_pattern(phrase).search(haystack)
        if match is None:
            continue
        rank = (match.start(), -len(phrase), canonical)
        if best is None or rank < best:
            best = rank
    return best[2] if best else None


# ---------------------------------------------------------------------------
# Free-text inference (table scan / raw scan)
# ---------------------------------------------------------------------------

def infer_condition(text: str, tables: KeywordTables = DEFAULT_KEYWORDS) -> str:
    """Canonical condition code mentioned in text, or "" when none is found."""
    return _find_keyword(text, tables.conditions) or ""


def infer_language(text: str, tables: KeywordTables = DEFAULT_KEYWORDS) -> str:
    """Canonical language mentioned in text, or "" when none is found."""
    return _find_keyword(text, tables.languages) or ""


def infer_first_edition(text: str, tables: KeywordTables = DEFAULT_KEYWORDS) -> bool:
    """True when any first-edition phrase occurs in text as whole words."""
    haystack = normalize_phrase(text)
    return any(_phrase_pattern(phrase).search(haystack) for phrase in tables.first_edition_phrases)


# ---------------------------------------------------------------------------
# Label canonicalization (semantic rows / criteria)
# ---------------------------------------------------------------------------

def canonical_condition(label: str, tables: KeywordTables = DEFAULT_KEYWORDS) -> str:
    """
    Map a condition badge or caller label to its canonical code.

    Exact table hits win ("Near Mint" -> "NM"). Unknown labels come back
    stripped and unchanged so a raw badge can still be compared verbatim.
    """
    key = normalize_phrase(label)
    if not key:
        return ""
    if key in tables.conditions:
        return tables.conditions[key]
    if key.upper() in {grade.value for grade in ConditionGrade}:
        return key.upper()

    logger.debug("condition_label_unmapped", label=label)
    return label.strip()


def canonical_language(label: str, tables: KeywordTables = DEFAULT_KEYWORDS) -> str:
    """Map a language icon title or caller label to its canonical name."""
    key = normalize_phrase(label)
    if not key:
        return ""
    if key in tables.languages:
        return tables.languages[key]

    logger.debug("language_label_unmapped", label=label)
    return label.strip()
