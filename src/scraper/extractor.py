"""
Cardmarket Offer Finder — Offer Extractor

Turns a prepared listing page into Offer records using a cascade of
strategies, stopping at the first one that yields anything:

1. semantic_rows  (PRIMARY)  : Cardmarket's own article-row markup
2. table_scan     (BACKUP)   : any row-like container holding one price
3. raw_text_scan  (EMERGENCY): every currency-shaped token on the page

Results are never merged across strategies. An empty strategy is an
ExtractionEmpty signal: logged here, never raised to the caller.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Awaitable, Callable

import structlog

from src.config import ZeroPricePolicy, settings
from src.scraper import Offer
from src.scraper.errors import ExtractionEmpty
from src.utils.condition_map import (
    DEFAULT_KEYWORDS,
    KeywordTables,
    canonical_condition,
    canonical_language,
    infer_condition,
    infer_first_edition,
    infer_language,
)
from src.utils.price import find_price_tokens, normalize_price

logger = structlog.get_logger(__name__)

SEMANTIC_ROWS = "semantic_rows"
TABLE_SCAN = "table_scan"
RAW_TEXT_SCAN = "raw_text_scan"

# semantic_rows selectors
ROW_SELECTOR = ".article-row, [data-article-id]"
CONDITION_SELECTOR = ".product-attributes .badge"
LANGUAGE_ICON_SELECTOR = ".product-attributes .icon"
FIRST_EDITION_SELECTOR = ".product-attributes .st_SpecialIcon"
PRICE_SELECTOR = ".price-container"
LANGUAGE_TITLE_ATTRIBUTES = ("data-bs-original-title", "data-original-title", "aria-label", "title")
PAGE_RARITY_SELECTOR = ".info-list-container svg[data-bs-original-title]"
PAGE_SET_SELECTOR = ".info-list-container a[href*='/Expansions/']"

# table_scan limits
TABLE_ROW_SELECTOR = "table tr, .offer-row, [class*='row']"
TABLE_ROW_MAX_CHARS = 400       # Longer text is a wrapper, not a row
TABLE_ROW_MAX_TOKENS = 3        # More price tokens means several offers in one node
TABLE_MAX_ROWS = 200
# Collapses layout whitespace only; NBSP inside a price is digit grouping
_LAYOUT_SPACE_RE = re.compile(r"[ \t\r\n\f\v]+")

RAW_CONTEXT_MAX_CHARS = 300

# Visible text nodes plus title/alt/value/data-* attribute values, each with
# the surrounding element text as context for attribute inference.
RAW_SCAN_SCRIPT = """
() => {
    const out = [];
    const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT);
    let node;
    while ((node = walker.nextNode())) {
        const text = (node.textContent || "").trim();
        const parent = node.parentElement;
        if (!text || !parent) continue;
        const style = window.getComputedStyle(parent);
        if (style.display === "none" || style.visibility === "hidden") continue;
        const holder = parent.closest("tr, li, [class*='row']") || parent;
        out.push({text: text, context: (holder.innerText || text).slice(0, 300)});
    }
    for (const el of document.querySelectorAll("*")) {
        for (const attr of el.attributes) {
            if (attr.name === "title" || attr.name === "alt" || attr.name === "value"
                    || attr.name.startsWith("data-")) {
                if (attr.value) {
                    out.push({text: attr.value, context: attr.value});
                }
            }
        }
    }
    return out;
}
"""

Strategy = Callable[[Any], Awaitable[list[Offer]]]


async def _text_of(element: Any) -> str:
    if element is None:
        return ""
    return ((await element.inner_text()) or "").strip()


async def _first_attribute(element: Any, names: tuple[str, ...]) -> str:
    if element is None:
        return ""
    for name in names:
        value = await element.get_attribute(name)
        if value and value.strip():
            return value.strip()
    return ""


class OfferExtractor:
    """
    Runs the extraction cascade over one page.

    Usage:
        extractor = OfferExtractor()
        offers = await extractor.extract(page)
        extractor.last_strategy  # "semantic_rows" | "table_scan" | "raw_text_scan" | None
    """

    def __init__(
        self,
        keywords: KeywordTables = DEFAULT_KEYWORDS,
        zero_price_policy: ZeroPricePolicy | None = None,
        raw_scan_cap: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.keywords = keywords
        self.zero_price_policy = zero_price_policy or settings.ZERO_PRICE_POLICY
        self.raw_scan_cap = raw_scan_cap if raw_scan_cap is not None else settings.RAW_SCAN_MAX_OFFERS
        self.timeout = timeout if timeout is not None else settings.EXTRACTION_TIMEOUT_SECONDS
        self.last_strategy: str | None = None

    async def extract(self, page: Any) -> list[Offer]:
        """
        Run the cascade.

        Returns:
            Offers from the first productive strategy, or [] when every
            strategy came back empty.
        """
        self.last_strategy = None
        strategies: list[tuple[str, Strategy]] = [
            (SEMANTIC_ROWS, self.semantic_rows),
            (TABLE_SCAN, self.table_scan),
            (RAW_TEXT_SCAN, self.raw_text_scan),
        ]

        for name, strategy in strategies:
            try:
                offers = await self._run_strategy(name, strategy, page)
            except ExtractionEmpty as e:
                logger.info("extraction_strategy_empty", strategy=e.strategy)
                continue

            self.last_strategy = name
            logger.info("extraction_success", strategy=name, offer_count=len(offers))
            return offers

        logger.warning("extraction_all_strategies_empty")
        return []

    async def _run_strategy(self, name: str, strategy: Strategy, page: Any) -> list[Offer]:
        try:
            offers = await asyncio.wait_for(strategy(page), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("extraction_strategy_timeout", strategy=name, timeout_seconds=self.timeout)
            raise ExtractionEmpty(name)
        except Exception as e:
            logger.warning("extraction_strategy_failed", strategy=name, error=str(e))
            raise ExtractionEmpty(name) from e

        offers = self._apply_zero_price_policy(name, offers)
        if not offers:
            raise ExtractionEmpty(name)
        return offers

    def _apply_zero_price_policy(self, name: str, offers: list[Offer]) -> list[Offer]:
        if self.zero_price_policy != ZeroPricePolicy.DROP:
            return offers

        kept = [o for o in offers if o.price_value > 0]
        if len(kept) != len(offers):
            logger.info(
                "extraction_zero_price_dropped",
                strategy=name,
                dropped=len(offers) - len(kept),
            )
        return kept

    # -----------------------------------------------------------------------
    # Strategy 1: semantic rows
    # -----------------------------------------------------------------------

    async def semantic_rows(self, page: Any) -> list[Offer]:
        rows = await page.query_selector_all(ROW_SELECTOR)
        if not rows:
            return []

        rarity, set_label = await self._page_attributes(page)

        offers: list[Offer] = []
        for index, row in enumerate(rows):
            try:
                offer = await self._parse_row(row, rarity, set_label)
            except Exception as e:
                logger.debug("semantic_row_skipped", row=index, error=str(e))
                continue
            if offer is not None:
                offers.append(offer)

        logger.debug("semantic_rows_parsed", rows=len(rows), offer_count=len(offers))
        return offers

    async def _parse_row(self, row: Any, rarity: str | None, set_label: str | None) -> Offer | None:
        price_display = await _text_of(await row.query_selector(PRICE_SELECTOR))
        if not price_display:
            return None

        condition = await _text_of(await row.query_selector(CONDITION_SELECTOR))
        language_icon = await row.query_selector(LANGUAGE_ICON_SELECTOR)
        language = await _first_attribute(language_icon, LANGUAGE_TITLE_ATTRIBUTES)
        first_edition = await row.query_selector(FIRST_EDITION_SELECTOR) is not None

        return Offer(
            condition_grade=canonical_condition(condition, self.keywords),
            language=canonical_language(language, self.keywords),
            is_first_edition=first_edition,
            price_display=price_display,
            price_value=normalize_price(price_display),
            rarity=rarity,
            set_label=set_label,
        )

    async def _page_attributes(self, page: Any) -> tuple[str | None, str | None]:
        rarity: str | None = None
        set_label: str | None = None
        try:
            rarity = await _first_attribute(
                await page.query_selector(PAGE_RARITY_SELECTOR),
                ("data-bs-original-title", "data-original-title"),
            ) or None
            set_label = await _text_of(await page.query_selector(PAGE_SET_SELECTOR)) or None
        except Exception as e:
            logger.debug("semantic_page_attributes_failed", error=str(e))
        return rarity, set_label

    # -----------------------------------------------------------------------
    # Strategy 2: generic table scan
    # -----------------------------------------------------------------------

    async def table_scan(self, page: Any) -> list[Offer]:
        rows = await page.query_selector_all(TABLE_ROW_SELECTOR)

        seen: set[tuple[str, str]] = set()
        offers: list[Offer] = []
        for row in rows[:TABLE_MAX_ROWS]:
            try:
                text = _LAYOUT_SPACE_RE.sub(" ", (await row.inner_text()) or "").strip()
            except Exception as e:
                logger.debug("table_row_unreadable", error=str(e))
                continue
            if not text or len(text) > TABLE_ROW_MAX_CHARS:
                continue

            tokens = find_price_tokens(text)
            if not tokens or len(tokens) > TABLE_ROW_MAX_TOKENS:
                continue

            key = (text, tokens[0])
            if key in seen:
                continue
            seen.add(key)
            offers.append(self._offer_from_text(tokens[0], text))

        return offers

    # -----------------------------------------------------------------------
    # Strategy 3: raw text scan
    # -----------------------------------------------------------------------

    async def raw_text_scan(self, page: Any) -> list[Offer]:
        snippets = await page.evaluate(RAW_SCAN_SCRIPT) or []

        by_value: dict[float, Offer] = {}
        for snippet in snippets:
            text = (snippet or {}).get("text") or ""
            context = (snippet or {}).get("context") or text
            for token in find_price_tokens(text):
                offer = self._offer_from_text(token, context[:RAW_CONTEXT_MAX_CHARS])
                by_value.setdefault(offer.price_value, offer)

        offers = sorted(by_value.values(), key=lambda o: o.price_value)
        return offers[: self.raw_scan_cap]

    def _offer_from_text(self, token: str, context: str) -> Offer:
        return Offer(
            condition_grade=infer_condition(context, self.keywords),
            language=infer_language(context, self.keywords),
            is_first_edition=infer_first_edition(context, self.keywords),
            price_display=token,
            price_value=normalize_price(token),
        )
