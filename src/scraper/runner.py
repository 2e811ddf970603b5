"""
Cardmarket Offer Finder — Scraper Runner (Acquisition Strategy Selector)

Walks the browser configuration table crossed with the load depths:

    standard/shallow -> standard/expanded -> permissive/shallow -> ...

Each pair is one attempt on a fresh browser session: launch, prepare the
page, extract, match, and on a hit enrich and return. A miss records an
AcquisitionAttempt, backs off and moves to the next pair. A navigation or
launch failure abandons the remaining depths of that profile.

Terminal outcomes: ScrapeResult, NoMatchingOfferFound,
EnvironmentUnavailable (every profile failed to launch) or RateLimited.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence

import structlog

from src.config import settings
from src.engine.matcher import match_offer
from src.scraper import AcquisitionAttempt, LoadDepth, MatchCriteria, ScrapeResult
from src.scraper.anti_detect import AntiDetect
from src.scraper.enricher import enrich_card_details
from src.scraper.errors import (
    EnvironmentUnavailable,
    NavigationError,
    NoMatchingOfferFound,
    RateLimited,
)
from src.scraper.extractor import OfferExtractor
from src.scraper.launcher import BrowserLauncher, PlaywrightLauncher
from src.scraper.profiles import LOAD_DEPTHS, BrowserProfile, default_profiles
from src.scraper.session import PageSession

logger = structlog.get_logger(__name__)


class ScraperRunner:
    """
    Runs the acquisition ladder for one listing URL.

    Usage:
        runner = ScraperRunner()
        result = await runner.find_offer(url, MatchCriteria(condition_grade="NM", language="French"))
    """

    def __init__(
        self,
        launcher: BrowserLauncher | None = None,
        profiles: Sequence[BrowserProfile] | None = None,
        load_depths: Sequence[LoadDepth] | None = None,
        extractor: OfferExtractor | None = None,
        anti_detect: AntiDetect | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        allow_fallback: bool | None = None,
    ) -> None:
        self.anti_detect = anti_detect or AntiDetect(sleep=sleep)
        self.launcher = launcher or PlaywrightLauncher(self.anti_detect)
        self.profiles = tuple(profiles) if profiles is not None else default_profiles()
        self.load_depths = tuple(load_depths) if load_depths is not None else LOAD_DEPTHS
        self.extractor = extractor or OfferExtractor()
        self.allow_fallback = (
            allow_fallback if allow_fallback is not None else settings.MATCHER_ALLOW_FALLBACK
        )
        self.last_attempts: list[AcquisitionAttempt] = []
        self._sleep = sleep

    async def find_offer(self, url: str, criteria: MatchCriteria) -> ScrapeResult:
        """
        Find the offer matching criteria on a listing page.

        Args:
            url: Cardmarket product listing URL.
            criteria: Requested condition, language and edition.

        Returns:
            ScrapeResult for the first attempt that produced a match.

        Raises:
            RateLimited: Hourly page budget exhausted.
            EnvironmentUnavailable: No profile could start a browser.
            NoMatchingOfferFound: Every attempt finished without a match.
        """
        if not self.anti_detect.can_scrape():
            logger.warning(
                "scraper_rate_limited",
                url=url,
                pages_remaining=self.anti_detect.pages_remaining,
                source="scraper_runner",
            )
            raise RateLimited(self.anti_detect.pages_remaining)

        await self.anti_detect.random_delay()
        self.anti_detect.record_page()

        attempts: list[AcquisitionAttempt] = []
        self.last_attempts = attempts
        launch_failures: list[str] = []

        for profile in self.profiles:
            for load_depth in self.load_depths:
                failed = sum(1 for a in attempts if not a.success)
                await self.anti_detect.backoff(failed)

                attempt = AcquisitionAttempt(profile_name=profile.name, load_depth=load_depth)
                logger.info(
                    "scraper_attempt_started",
                    url=url,
                    profile=profile.name,
                    load_depth=load_depth.value,
                    attempt=len(attempts) + 1,
                    source="scraper_runner",
                )

                abandon_profile = False
                try:
                    result = await asyncio.wait_for(
                        self._attempt(url, criteria, profile, load_depth, attempt),
                        timeout=profile.attempt_timeout_seconds,
                    )
                except EnvironmentUnavailable as e:
                    attempt.reason = f"launch failed: {e.reason}"
                    launch_failures.append(f"{profile.name}: {e.reason}")
                    abandon_profile = True
                    result = None
                except NavigationError as e:
                    attempt.reason = f"navigation failed: {e.reason}"
                    abandon_profile = True
                    result = None
                except asyncio.TimeoutError:
                    attempt.reason = f"attempt timed out after {profile.attempt_timeout_seconds}s"
                    result = None
                except Exception as e:
                    attempt.reason = f"unexpected error: {e}"
                    result = None

                if result is not None:
                    attempts.append(attempt)
                    logger.info(
                        "scraper_success",
                        url=url,
                        profile=profile.name,
                        load_depth=load_depth.value,
                        strategy=attempt.strategy,
                        offer_count=attempt.offer_count,
                        price=result.chosen_offer.price_display,
                        source="scraper_runner",
                    )
                    return result

                attempts.append(attempt)
                logger.warning(
                    "scraper_attempt_failed",
                    url=url,
                    profile=profile.name,
                    load_depth=load_depth.value,
                    reason=attempt.reason,
                    offer_count=attempt.offer_count,
                    source="scraper_runner",
                )
                if abandon_profile:
                    break

        if self.profiles and len(launch_failures) == len(self.profiles):
            logger.error(
                "scraper_environment_unavailable",
                url=url,
                failures=launch_failures,
                source="scraper_runner",
            )
            raise EnvironmentUnavailable("every browser profile failed to launch ({})".format(
                "; ".join(launch_failures)
            ))

        logger.warning(
            "scraper_all_attempts_failed",
            url=url,
            attempts=len(attempts),
            condition=criteria.condition_grade,
            language=criteria.language,
            first_edition=criteria.is_first_edition,
            source="scraper_runner",
        )
        raise NoMatchingOfferFound(criteria, attempts)

    async def _attempt(
        self,
        url: str,
        criteria: MatchCriteria,
        profile: BrowserProfile,
        load_depth: LoadDepth,
        attempt: AcquisitionAttempt,
    ) -> ScrapeResult | None:
        """One (profile, load depth) pair on its own browser session."""
        browser = await self.launcher.launch(profile)
        try:
            page_session = PageSession(browser.page, url, profile, sleep=self._sleep)
            await page_session.prepare(load_depth)

            if profile.pre_extract_delay_seconds > 0:
                await self._sleep(profile.pre_extract_delay_seconds)

            offers = await self.extractor.extract(browser.page)
            attempt.offer_count = len(offers)
            attempt.strategy = self.extractor.last_strategy
            if not offers:
                attempt.reason = "no offers extracted"
                return None

            outcome = match_offer(offers, criteria, allow_fallback=self.allow_fallback)
            if outcome.offer is None:
                attempt.reason = "no offer matches the criteria"
                return None

            details = await enrich_card_details(browser.page, outcome.offer)
            attempt.success = True
            return ScrapeResult(
                display_name=details.display_name,
                set_label=details.set_label,
                rarity=details.rarity,
                chosen_offer=outcome.offer,
                offer_count=len(offers),
                image_url=details.image_url,
                profile_name=profile.name,
                load_depth=load_depth,
            )
        finally:
            await browser.close()
