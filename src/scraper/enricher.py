"""
Cardmarket Offer Finder — Card Detail Enricher

Reads title, rarity, set and image off the page that produced the chosen
offer. Never raises: a missing element falls back to the offer's own
attributes and then to a fixed placeholder.
"""

from __future__ import annotations

import asyncio
from typing import Any, NamedTuple

import structlog

from src.config import settings
from src.scraper import Offer

logger = structlog.get_logger(__name__)

UNKNOWN_CARD = "Unknown card"
UNKNOWN_RARITY = "Unknown rarity"
UNKNOWN_SET = "Unknown set"

TITLE_SELECTORS = ("h1",)
RARITY_SELECTORS = (
    ".info-list-container svg[data-bs-original-title]",
    ".info-list-container [data-original-title]",
    ".info-list-container .rarity",
)
SET_SELECTORS = (
    ".info-list-container a[href*='/Expansions/']",
    "a[href*='/Expansions/']",
    ".expansion-title",
)
IMAGE_SELECTORS = (
    "#image img",
    ".image img",
    "meta[property='og:image']",
)


class CardDetails(NamedTuple):
    display_name: str
    rarity: str
    set_label: str
    image_url: str | None


async def _lookup(page: Any, selector: str, attributes: tuple[str, ...] = ()) -> str:
    """Text (or first non-empty attribute) of the first match, "" when absent."""
    timeout = settings.ENRICH_TIMEOUT_MS / 1000
    try:
        element = await asyncio.wait_for(page.query_selector(selector), timeout=timeout)
        if element is None:
            return ""
        for name in attributes:
            value = await asyncio.wait_for(element.get_attribute(name), timeout=timeout)
            if value and value.strip():
                return value.strip()
        if attributes:
            return ""
        text = await asyncio.wait_for(element.inner_text(), timeout=timeout)
        return " ".join((text or "").split())
    except Exception as e:
        logger.debug("enrich_lookup_failed", selector=selector, error=str(e))
        return ""


async def _first(page: Any, selectors: tuple[str, ...], attributes: tuple[str, ...] = ()) -> str:
    for selector in selectors:
        value = await _lookup(page, selector, attributes)
        if value:
            return value
    return ""


async def enrich_card_details(page: Any, offer: Offer | None = None) -> CardDetails:
    """
    Collect display fields for a ScrapeResult.

    Args:
        page: The Playwright page the offer was extracted from.
        offer: Chosen offer, used as fallback for rarity and set.

    Returns:
        CardDetails with placeholders for whatever could not be read.
    """
    display_name = await _first(page, TITLE_SELECTORS)

    rarity = await _first(page, RARITY_SELECTORS[:2], ("data-bs-original-title", "data-original-title"))
    if not rarity:
        rarity = await _first(page, RARITY_SELECTORS[2:])

    set_label = await _first(page, SET_SELECTORS)

    image_url = await _first(page, IMAGE_SELECTORS[:2], ("src", "data-src"))
    if not image_url:
        image_url = await _first(page, IMAGE_SELECTORS[2:], ("content",))

    details = CardDetails(
        display_name=display_name or UNKNOWN_CARD,
        rarity=rarity or (offer.rarity if offer else None) or UNKNOWN_RARITY,
        set_label=set_label or (offer.set_label if offer else None) or UNKNOWN_SET,
        image_url=image_url or None,
    )

    logger.debug(
        "card_details_enriched",
        display_name=details.display_name,
        rarity=details.rarity,
        set_label=details.set_label,
        has_image=details.image_url is not None,
    )
    return details
