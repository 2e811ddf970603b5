"""
Cardmarket Offer Finder — Locale-aware price parsing

Listing pages render prices in whatever locale the visitor gets served:
"3,50 €", "15.000,00 €", "1234.56€", "1 234.56 €". Separator rules:

- both "." and "," present: the rightmost one is the decimal separator,
  the other one is thousands grouping and is stripped
- only ",": decimal separator (several comma-separated 3-digit groups,
  e.g. "1,234,567", are treated as grouping)
- only ".": decimal separator, unless the number is 3-digit grouped
  ("15.000", "1.234.567") and the original text holds no comma at all
- spaces / NBSP between 3-digit groups are grouping

Inside longer text (find_price_tokens) a plain space separates words:
"English 4 150,00 €" is a quantity followed by a price, not 4150. Only NBSP
and narrow NBSP group digits there.

normalize_price() never raises: an unparseable snippet yields 0.0 and a
price_parse_failed log line. parse_price() is the strict variant.
"""

from __future__ import annotations

import re
from decimal import Decimal

import structlog

from src.scraper.errors import PriceParseFailure

logger = structlog.get_logger(__name__)

# Digits, optionally continued by "."/"," fragments or whitespace-separated 3-digit groups
_AMOUNT = r"\d+(?:[.,]\d+|[ \u00a0\u202f]\d{3}(?!\d))*"
# Same, with only typographic spaces as grouping
_TEXT_AMOUNT = r"\d+(?:[.,]\d+|[\u00a0\u202f]\d{3}(?!\d))*"
_NUMBER_RE = re.compile(_AMOUNT)
_CURRENCY = r"(?:€|\$|£|EUR)"
_PRICE_TOKEN_RE = re.compile(
    rf"(?:{_CURRENCY}[ \u00a0\u202f]?{_TEXT_AMOUNT}|{_TEXT_AMOUNT}[ \u00a0\u202f]?{_CURRENCY})"
)
_GROUP_SPACES = str.maketrans("", "", " \u00a0\u202f")


def _is_thousands_grouped(number: str, separator: str) -> bool:
    """True when every fragment after the first separator is exactly 3 digits."""
    head, *groups = number.split(separator)
    return bool(groups) and 1 <= len(head) <= 3 and all(len(g) == 3 for g in groups)


def _to_float_string(number: str, original: str) -> str:
    number = number.translate(_GROUP_SPACES)
    has_dot = "." in number
    has_comma = "," in number

    if has_dot and has_comma:
        decimal_pos = max(number.rfind("."), number.rfind(","))
        integer_part = number[:decimal_pos].replace(".", "").replace(",", "")
        return f"{integer_part}.{number[decimal_pos + 1:]}"

    if has_comma:
        if number.count(",") > 1 and _is_thousands_grouped(number, ","):
            return number.replace(",", "")
        decimal_pos = number.rfind(",")
        return f"{number[:decimal_pos].replace(',', '')}.{number[decimal_pos + 1:]}"

    if has_dot:
        if "," not in original and _is_thousands_grouped(number, "."):
            return number.replace(".", "")
        decimal_pos = number.rfind(".")
        return f"{number[:decimal_pos].replace('.', '')}.{number[decimal_pos + 1:]}"

    return number


def parse_price(text: str) -> float:
    """
    Parse a locale-formatted price snippet into a float.

    Args:
        text: Raw snippet as rendered on the page (e.g. "15.000,00€").

    Returns:
        The numeric value.

    Raises:
        PriceParseFailure: If the snippet holds no numeric substring.
    """
    if not text:
        raise PriceParseFailure(text or "")

    match = _NUMBER_RE.search(text)
    if match is None:
        raise PriceParseFailure(text)

    return float(_to_float_string(match.group(), text))


def normalize_price(text: str) -> float:
    """
    Non-raising variant of parse_price().

    Returns 0.0 when no numeric value can be read. The failure is logged,
    never propagated: the offer carrying this price keeps its other
    attributes.
    """
    try:
        return parse_price(text)
    except PriceParseFailure as e:
        logger.warning("price_parse_failed", text=e.text)
        return 0.0


def format_price(value: float) -> str:
    """
    Render a value the way listing pages do: "3,50 €".

    Values with more than two decimals keep every digit ("1,234 €") so
    parse_price() reads back the same number.
    """
    if round(value, 2) == value:
        return f"{value:.2f}".replace(".", ",") + " €"
    return format(Decimal(repr(value)), "f").replace(".", ",") + " €"


def find_price_tokens(text: str) -> list[str]:
    """Return every currency-shaped token ("3,50 €", "€12.50") in text, in order."""
    if not text:
        return []
    return [m.group().strip() for m in _PRICE_TOKEN_RE.finditer(text)]
