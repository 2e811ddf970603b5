"""Tests for the card detail enricher."""

from __future__ import annotations

from unittest.mock import AsyncMock

from src.scraper import Offer
from src.scraper.enricher import UNKNOWN_CARD, UNKNOWN_RARITY, UNKNOWN_SET, enrich_card_details
from fakes import FakeElement, FakePage, listing_page


class TestEnrichCardDetails:
    async def test_reads_page_fields(self) -> None:
        """Title is trimmed; rarity and set come from the info list."""
        page = listing_page()
        page.selectors["#image img"] = [FakeElement(attrs={"src": "https://img/dracaufeu.jpg"})]

        details = await enrich_card_details(page, Offer())

        assert details.display_name == "Dracaufeu"
        assert details.rarity == "Holo Rare"
        assert details.set_label == "Set de Base"
        assert details.image_url == "https://img/dracaufeu.jpg"

    async def test_falls_back_to_offer_fields(self) -> None:
        """Missing rarity / set fall back to what the offer carried."""
        page = listing_page(rarity=None, set_label=None)
        offer = Offer(rarity="Common", set_label="Jungle")

        details = await enrich_card_details(page, offer)

        assert details.rarity == "Common"
        assert details.set_label == "Jungle"

    async def test_sentinels_when_nothing_found(self) -> None:
        """An empty page yields the fixed placeholders and no image."""
        details = await enrich_card_details(FakePage(), None)

        assert details.display_name == UNKNOWN_CARD
        assert details.rarity == UNKNOWN_RARITY
        assert details.set_label == UNKNOWN_SET
        assert details.image_url is None

    async def test_og_image_fallback(self) -> None:
        """The og:image meta tag is used when no product image is found."""
        page = FakePage(selectors={
            "meta[property='og:image']": [FakeElement(attrs={"content": "https://img/og.jpg"})],
        })
        details = await enrich_card_details(page)
        assert details.image_url == "https://img/og.jpg"

    async def test_never_raises(self) -> None:
        """Lookup errors degrade to placeholders."""
        page = FakePage()
        page.query_selector = AsyncMock(side_effect=RuntimeError("target closed"))

        details = await enrich_card_details(page, Offer(rarity="Rare"))

        assert details.display_name == UNKNOWN_CARD
        assert details.rarity == "Rare"
