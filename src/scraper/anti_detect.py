"""
Cardmarket Offer Finder — Anti-Detection Layer

Manages random delays, user-agent rotation, proxy configuration,
escalating backoff between acquisition attempts and the hourly page cap
from settings.SCRAPE_MAX_PAGES_PER_HOUR.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog

from src.config import settings

logger = structlog.get_logger(__name__)


class AntiDetect:
    """
    Anti-detection helper shared by every attempt of a scrape request.

    Manages:
    - Random delays between scrape_delay_min and scrape_delay_max
    - Hourly page rate cap (SCRAPE_MAX_PAGES_PER_HOUR)
    - User-agent rotation
    - Proxy configuration
    - Escalating backoff between acquisition attempts
    """

    # Realistic user agents for rotation
    USER_AGENTS = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36 Edg/122.0.0.0",
    ]

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._sleep = sleep
        self._pages_this_hour: int = 0
        self._hour_start: datetime = datetime.now(timezone.utc)
        self._max_pages_per_hour: int = settings.SCRAPE_MAX_PAGES_PER_HOUR
        self._delay_min: int = settings.SCRAPE_DELAY_MIN_SECONDS
        self._delay_max: int = settings.SCRAPE_DELAY_MAX_SECONDS
        self._backoff_base: float = settings.BACKOFF_BASE_SECONDS
        self._backoff_max: float = settings.BACKOFF_MAX_SECONDS

    def _reset_hour_if_needed(self) -> None:
        """Reset page counter if a new hour has started."""
        now = datetime.now(timezone.utc)
        elapsed = (now - self._hour_start).total_seconds()
        if elapsed >= 3600:
            self._pages_this_hour = 0
            self._hour_start = now

    def can_scrape(self) -> bool:
        """Check if we're under the hourly rate cap."""
        self._reset_hour_if_needed()
        return self._pages_this_hour < self._max_pages_per_hour

    def record_page(self) -> None:
        """Record a page scrape for rate limiting."""
        self._reset_hour_if_needed()
        self._pages_this_hour += 1

    async def random_delay(self) -> None:
        """Sleep for a random duration between min and max delay."""
        delay = random.uniform(self._delay_min, self._delay_max)
        logger.debug("anti_detect_delay", delay_seconds=round(delay, 2), source="anti_detect")
        await self._sleep(delay)

    def backoff_delay(self, failed_attempts: int) -> float:
        """Backoff after the n-th failed attempt: base × n, capped at the max."""
        if failed_attempts <= 0:
            return 0.0
        return min(self._backoff_base * failed_attempts, self._backoff_max)

    async def backoff(self, failed_attempts: int) -> None:
        """Sleep for the escalating backoff before the next attempt."""
        delay = self.backoff_delay(failed_attempts)
        if delay <= 0:
            return
        logger.info(
            "anti_detect_backoff",
            failed_attempts=failed_attempts,
            delay_seconds=delay,
            source="anti_detect",
        )
        await self._sleep(delay)

    def get_random_user_agent(self) -> str:
        """Return a random user agent string."""
        return random.choice(self.USER_AGENTS)

    def get_proxy_config(self) -> dict[str, str] | None:
        """Return proxy configuration if PROXY_URL is set."""
        if settings.PROXY_URL:
            return {"server": settings.PROXY_URL}
        return None

    @property
    def pages_remaining(self) -> int:
        """Pages remaining in current hour window."""
        self._reset_hour_if_needed()
        return max(0, self._max_pages_per_hour - self._pages_this_hour)
