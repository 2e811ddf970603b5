"""
Cardmarket Offer Finder — Page Session Controller

Drives one live page from a bare URL to a consent-cleared, optionally
expanded listing:

    UNOPENED -> NAVIGATED -> BOT_CHECK_CLEARED -> CONSENT_CLEARED
             -> (CONTENT_EXPANDED) -> READY

Only navigation is fatal (NavigationError ends the attempt). Every later
step degrades: log and carry on. Anti-bot interstitials are waited out,
never solved.
"""

from __future__ import annotations

import asyncio
import math
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from src.config import settings
from src.scraper import LoadDepth
from src.scraper.errors import NavigationError
from src.scraper.profiles import BrowserProfile

logger = structlog.get_logger(__name__)


class SessionState(str, Enum):
    UNOPENED = "unopened"
    NAVIGATED = "navigated"
    BOT_CHECK_CLEARED = "bot_check_cleared"
    CONSENT_CLEARED = "consent_cleared"
    CONTENT_EXPANDED = "content_expanded"
    READY = "ready"


# Lowercased markers of an anti-bot interstitial, matched against the page title
CHALLENGE_TITLE_MARKERS: tuple[str, ...] = (
    "just a moment",
    "un instant",
    "einen moment",
    "checking your browser",
    "attention required",
    "please wait",
)
CHALLENGE_ELEMENT_SELECTOR = "#challenge-form, #cf-challenge-running, .cf-browser-verification"

# Tried in order, first successful click wins
CONSENT_SELECTORS: tuple[str, ...] = (
    # exact element ids
    "#denyAll",
    "#acceptAll",
    # attribute based
    "[data-testid='cookie-banner-deny']",
    "[data-testid='cookie-banner-accept']",
    "button[class*='cookie'][class*='deny']",
    "button[class*='cookie'][class*='decline']",
    # text based
    "button:has-text('Refuser')",
    "button:has-text('Reject')",
    "button:has-text('Ablehnen')",
    "button:has-text('Rifiuta')",
    "button:has-text('Rechazar')",
    "button:has-text('Accepter')",
    "button:has-text('Accept')",
    "button:has-text('Akzeptieren')",
    ".cookie-banner button",
)

LOAD_MORE_SELECTORS: tuple[str, ...] = (
    "#loadMoreButton",
    "button:has-text('Show more results')",
    "button:has-text('Montrer plus de résultats')",
    "button:has-text('Afficher plus')",
    "button:has-text('Charger plus')",
    "button:has-text('Mehr Ergebnisse anzeigen')",
    "button:has-text('Mostra più risultati')",
    "button:has-text('Mostrar más resultados')",
)


class PageSession:
    """
    State machine over one Playwright page.

    Usage:
        session = PageSession(page, url, profile)
        await session.prepare(LoadDepth.EXPANDED)
    """

    def __init__(
        self,
        page: Any,
        url: str,
        profile: BrowserProfile,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.page = page
        self.url = url
        self.profile = profile
        self.state = SessionState.UNOPENED
        self.consent_selector: str | None = None
        self.load_more_clicked = False
        self._sleep = sleep

    async def prepare(self, load_depth: LoadDepth = LoadDepth.SHALLOW) -> SessionState:
        """
        Run the full chain for one attempt.

        Raises:
            NavigationError: The page could not be reached.
        """
        await self.navigate()
        await self.wait_for_bot_check()
        await self.dismiss_consent()
        if load_depth == LoadDepth.EXPANDED:
            await self.expand_content()

        self.state = SessionState.READY
        logger.info(
            "page_session_ready",
            url=self.url,
            profile=self.profile.name,
            load_depth=load_depth.value,
            consent_selector=self.consent_selector,
            load_more_clicked=self.load_more_clicked,
        )
        return self.state

    async def navigate(self) -> None:
        """UNOPENED -> NAVIGATED. The one step allowed to fail the attempt."""
        try:
            await self.page.goto(
                self.url,
                wait_until="domcontentloaded",
                timeout=self.profile.navigation_timeout_ms,
            )
        except Exception as e:
            logger.warning(
                "page_navigation_failed",
                url=self.url,
                profile=self.profile.name,
                error=str(e),
            )
            raise NavigationError(self.url, str(e) or type(e).__name__) from e

        self.state = SessionState.NAVIGATED

    async def _challenge_present(self) -> bool:
        try:
            title = (await self.page.title() or "").lower()
            if any(marker in title for marker in CHALLENGE_TITLE_MARKERS):
                return True
            return await self.page.query_selector(CHALLENGE_ELEMENT_SELECTOR) is not None
        except Exception as e:
            # Title reads fail while the challenge page redirects
            logger.debug("bot_check_probe_failed", url=self.url, error=str(e))
            return True

    async def wait_for_bot_check(self) -> bool:
        """
        NAVIGATED -> BOT_CHECK_CLEARED.

        Polls for a challenge marker every BOT_CHECK_POLL_SECONDS up to the
        profile's window. Proceeds on expiry.

        Returns:
            True if the page was clear before the window expired.
        """
        poll = max(settings.BOT_CHECK_POLL_SECONDS, 0.01)
        max_polls = max(1, math.ceil(self.profile.bot_check_window_seconds / poll))

        cleared = False
        for _ in range(max_polls):
            if not await self._challenge_present():
                cleared = True
                break
            await self._sleep(poll)

        if cleared:
            logger.debug("bot_check_cleared", url=self.url, profile=self.profile.name)
        else:
            logger.warning(
                "bot_check_window_expired",
                url=self.url,
                profile=self.profile.name,
                window_seconds=self.profile.bot_check_window_seconds,
            )

        self.state = SessionState.BOT_CHECK_CLEARED
        return cleared

    async def dismiss_consent(self) -> str | None:
        """
        BOT_CHECK_CLEARED -> CONSENT_CLEARED.

        Returns:
            The selector that dismissed the banner, or None when no banner
            was found.
        """
        for selector in CONSENT_SELECTORS:
            try:
                element = await self.page.query_selector(selector)
                if element is None or not await element.is_visible():
                    continue
                await element.click(timeout=settings.CONSENT_CLICK_TIMEOUT_MS)
            except Exception as e:
                logger.debug("consent_click_failed", selector=selector, error=str(e))
                continue

            self.consent_selector = selector
            logger.info("consent_banner_dismissed", url=self.url, selector=selector)
            break
        else:
            logger.info("consent_banner_absent", url=self.url)

        self.state = SessionState.CONSENT_CLEARED
        return self.consent_selector

    async def expand_content(self) -> bool:
        """
        CONSENT_CLEARED -> CONTENT_EXPANDED.

        Scrolls to the bottom, clicks the first visible "load more" control
        and waits for the network to settle. A missing control is fine.
        """
        try:
            await self.page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
            await self._sleep(settings.SCROLL_SETTLE_SECONDS)
        except Exception as e:
            logger.debug("page_scroll_failed", url=self.url, error=str(e))

        for selector in LOAD_MORE_SELECTORS:
            try:
                element = await self.page.query_selector(selector)
                if element is None or not await element.is_visible():
                    continue
                await element.scroll_into_view_if_needed(timeout=settings.CONSENT_CLICK_TIMEOUT_MS)
                await element.click(timeout=settings.CONSENT_CLICK_TIMEOUT_MS)
            except Exception as e:
                logger.debug("load_more_click_failed", selector=selector, error=str(e))
                continue

            self.load_more_clicked = True
            logger.info("load_more_clicked", url=self.url, selector=selector)
            await self._sleep(self.profile.load_more_settle_seconds)
            break
        else:
            logger.info("load_more_absent", url=self.url)

        self.state = SessionState.CONTENT_EXPANDED
        return self.load_more_clicked
