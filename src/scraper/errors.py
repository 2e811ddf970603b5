"""
Cardmarket Offer Finder — Scraper error taxonomy

Only NoMatchingOfferFound, EnvironmentUnavailable and RateLimited ever reach
callers of ScraperRunner. The others are raised and handled inside the
scraper layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.scraper import AcquisitionAttempt, MatchCriteria


class ScraperError(Exception):
    """Base class for every scraper failure."""


class NavigationError(ScraperError):
    """Transport, DNS or timeout failure reaching the listing page."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class PriceParseFailure(ScraperError, ValueError):
    """No numeric value could be read from a price snippet."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Cannot parse a price from {text!r}")


class ExtractionEmpty(ScraperError):
    """A single extraction strategy found no offers."""

    def __init__(self, strategy: str) -> None:
        self.strategy = strategy
        super().__init__(f"Strategy {strategy!r} found no offers")


class NoMatchingOfferFound(ScraperError):
    """Every acquisition attempt finished without an offer matching the criteria."""

    def __init__(
        self,
        criteria: MatchCriteria,
        attempts: list[AcquisitionAttempt] | None = None,
    ) -> None:
        self.criteria = criteria
        self.attempts = list(attempts or [])
        super().__init__(
            "No offer matches the requested criteria "
            f"(condition: {criteria.condition_grade}, language: {criteria.language}, "
            f"first edition: {criteria.is_first_edition}) "
            f"after {len(self.attempts)} attempt(s)"
        )


class EnvironmentUnavailable(ScraperError):
    """The browser automation capability could not be started."""

    DEFAULT_GUIDANCE = (
        "No compatible browser found. Install the Playwright Chromium build "
        "(`playwright install chromium`) or a system Chrome/Edge, or set "
        "BROWSER_EXECUTABLE_PATH to an existing Chromium-based browser."
    )

    def __init__(self, reason: str, guidance: str | None = None) -> None:
        self.reason = reason
        self.guidance = guidance or self.DEFAULT_GUIDANCE
        super().__init__(f"Browser unavailable: {reason}. {self.guidance}")


class RateLimited(ScraperError):
    """The hourly page budget is exhausted."""

    def __init__(self, pages_remaining: int = 0) -> None:
        self.pages_remaining = pages_remaining
        super().__init__("Hourly scrape budget exhausted, retry later")


class CardAlreadyExists(ScraperError):
    """The listing URL is already saved in the requested partition."""

    def __init__(self, card_url: str, partition: str) -> None:
        self.card_url = card_url
        self.partition = partition
        super().__init__(f"This card is already in your {partition}")
