"""
Tests for the offer extractor cascade.

Covers semantic rows short-circuiting the cascade, table scan inference,
raw text scan dedupe / sort / cap, strategy failure and timeouts, and the
zero-price keep / drop policy.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.config import ZeroPricePolicy
from src.scraper.extractor import RAW_TEXT_SCAN, SEMANTIC_ROWS, TABLE_SCAN, OfferExtractor
from fakes import FakeElement, article_row, listing_page


class TestSemanticRows:
    async def test_semantic_only_page_stops_cascade(self) -> None:
        """Strategy 1 alone produces the offers; 2 and 3 are never invoked."""
        page = listing_page(rows=[
            article_row("NM", "English", "2,00 €"),
            article_row("NM", "English", "5,00 €", first_edition=True),
            article_row("EX", "French", "1,50 €"),
        ])
        extractor = OfferExtractor()

        with patch.object(extractor, "table_scan", new=AsyncMock()) as table, \
                patch.object(extractor, "raw_text_scan", new=AsyncMock()) as raw:
            offers = await extractor.extract(page)

        assert len(offers) == 3
        assert extractor.last_strategy == SEMANTIC_ROWS
        table.assert_not_awaited()
        raw.assert_not_awaited()

    async def test_row_fields(self) -> None:
        """Badge, icon title, edition icon and price are read per row."""
        page = listing_page(rows=[article_row("Near Mint", "Français", "15.000,00 €", first_edition=True)])
        offers = await OfferExtractor().extract(page)

        offer = offers[0]
        assert offer.condition_grade == "NM"
        assert offer.language == "French"
        assert offer.is_first_edition is True
        assert offer.price_display == "15.000,00 €"
        assert offer.price_value == pytest.approx(15000.0)
        assert offer.rarity == "Holo Rare"
        assert offer.set_label == "Set de Base"

    async def test_broken_row_is_skipped(self) -> None:
        """A row whose sub-field lookup throws is skipped, the pass continues."""
        broken = FakeElement()
        broken.query_selector = AsyncMock(side_effect=RuntimeError("detached"))
        page = listing_page(rows=[broken, article_row("NM", "English", "2,00 €")])

        offers = await OfferExtractor().extract(page)

        assert len(offers) == 1
        assert offers[0].price_value == pytest.approx(2.0)

    async def test_row_without_price_is_skipped(self) -> None:
        """Rows with no price container are not offers."""
        no_price = FakeElement(children={})
        page = listing_page(rows=[no_price, article_row("NM", "English", "2,00 €")])

        offers = await OfferExtractor().extract(page)
        assert len(offers) == 1


class TestTableScan:
    async def test_table_rows_infer_attributes(self) -> None:
        """No semantic rows: strategy 2 infers grade and language from row text."""
        page = listing_page(table_rows=[
            "Near Mint Anglais 3,50 €",
            "Excellent Allemand 1st Edition 2,00 €",
            "Header without price",
        ])
        extractor = OfferExtractor()

        with patch.object(extractor, "raw_text_scan", new=AsyncMock()) as raw:
            offers = await extractor.extract(page)

        assert extractor.last_strategy == TABLE_SCAN
        raw.assert_not_awaited()
        assert [(o.condition_grade, o.language, o.is_first_edition) for o in offers] == [
            ("NM", "English", False),
            ("EX", "German", True),
        ]
        assert offers[0].price_value == pytest.approx(3.5)

    async def test_unmatched_attributes_stay_empty(self) -> None:
        """Rows without keywords still yield an offer with empty attributes."""
        page = listing_page(table_rows=["Seller42 4,00 €"])
        offers = await OfferExtractor().extract(page)
        assert offers[0].condition_grade == ""
        assert offers[0].language == ""

    async def test_leading_quantity_not_read_as_thousands(self) -> None:
        """A count column before the price does not inflate it."""
        page = listing_page(table_rows=["Near Mint English 4 150,00 €", "Near Mint English 1 2,00 €"])
        offers = await OfferExtractor().extract(page)
        assert [o.price_value for o in offers] == pytest.approx([150.0, 2.0])

    async def test_nbsp_grouped_price_in_row(self) -> None:
        """NBSP digit grouping survives row whitespace collapsing."""
        page = listing_page(table_rows=["Near Mint\n English  1\u00a0234,56\u00a0€"])
        offers = await OfferExtractor().extract(page)
        assert offers[0].price_value == pytest.approx(1234.56)

    async def test_duplicate_and_wrapper_rows_ignored(self) -> None:
        """Identical rows collapse; rows with many prices are containers."""
        page = listing_page(table_rows=[
            "NM English 3,00 €",
            "NM English 3,00 €",
            "1,00 € 2,00 € 3,00 € 4,00 €",
        ])
        offers = await OfferExtractor().extract(page)
        assert len(offers) == 1


class TestRawTextScan:
    async def test_dedupes_sorts_and_caps(self) -> None:
        """Tokens are deduped by value, sorted ascending and capped."""
        snippets = [
            {"text": f"{n},00 €", "context": f"NM English {n},00 €"} for n in (9, 3, 7, 3, 5, 1)
        ]
        page = listing_page(evaluate_result=snippets)
        extractor = OfferExtractor(raw_scan_cap=3)

        offers = await extractor.extract(page)

        assert extractor.last_strategy == RAW_TEXT_SCAN
        assert [o.price_value for o in offers] == [1.0, 3.0, 5.0]
        assert all(o.condition_grade == "NM" for o in offers)

    async def test_attribute_snippets_are_scanned(self) -> None:
        """Attribute values (title / data-*) count as text."""
        page = listing_page(evaluate_result=[{"text": "From 0,35 €", "context": "From 0,35 €"}])
        offers = await OfferExtractor().extract(page)
        assert offers[0].price_value == pytest.approx(0.35)


class TestCascadeFailures:
    async def test_everything_empty_returns_empty_list(self) -> None:
        """No strategy produces offers: [] and no strategy recorded."""
        extractor = OfferExtractor()
        offers = await extractor.extract(listing_page(evaluate_result=[]))
        assert offers == []
        assert extractor.last_strategy is None

    async def test_failing_strategy_cascades(self) -> None:
        """An exception inside a strategy counts as empty."""
        page = listing_page(table_rows=["NM English 3,00 €"])
        extractor = OfferExtractor()

        with patch.object(extractor, "semantic_rows", new=AsyncMock(side_effect=RuntimeError("boom"))):
            offers = await extractor.extract(page)

        assert extractor.last_strategy == TABLE_SCAN
        assert len(offers) == 1

    async def test_timed_out_strategy_cascades(self) -> None:
        """A strategy exceeding the timeout counts as empty."""
        async def hang(page):
            await asyncio.sleep(10)

        page = listing_page(table_rows=["NM English 3,00 €"])
        extractor = OfferExtractor(timeout=0.01)

        with patch.object(extractor, "semantic_rows", new=hang):
            offers = await extractor.extract(page)

        assert extractor.last_strategy == TABLE_SCAN
        assert len(offers) == 1


class TestZeroPricePolicy:
    async def test_keep_policy_keeps_zero_priced_offer(self) -> None:
        """Default policy: an unparseable price becomes 0.0 and the offer stays."""
        page = listing_page(rows=[
            article_row("NM", "English", "price on request"),
            article_row("NM", "English", "2,00 €"),
        ])
        offers = await OfferExtractor(zero_price_policy=ZeroPricePolicy.KEEP).extract(page)

        assert len(offers) == 2
        assert offers[0].price_value == 0.0
        assert offers[0].price_display == "price on request"

    async def test_drop_policy_discards_zero_priced_offer(self) -> None:
        """Drop policy removes offers whose price parsed to 0.0."""
        page = listing_page(rows=[
            article_row("NM", "English", "price on request"),
            article_row("NM", "English", "2,00 €"),
        ])
        offers = await OfferExtractor(zero_price_policy=ZeroPricePolicy.DROP).extract(page)

        assert len(offers) == 1
        assert offers[0].price_value == pytest.approx(2.0)

    async def test_drop_policy_can_empty_a_strategy(self) -> None:
        """If every semantic offer is dropped, the cascade moves on."""
        page = listing_page(
            rows=[article_row("NM", "English", "N/A")],
            table_rows=["NM English 3,00 €"],
        )
        extractor = OfferExtractor(zero_price_policy=ZeroPricePolicy.DROP)
        offers = await extractor.extract(page)

        assert extractor.last_strategy == TABLE_SCAN
        assert offers[0].price_value == pytest.approx(3.0)
