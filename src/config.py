"""
Cardmarket Offer Finder — Configuration & Constants

Every timeout, cap and policy switch used by the scraper lives here.
No hardcoded timing values in business logic.

Usage:
    from src.config import settings
"""

from __future__ import annotations

from enum import Enum

from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ZeroPricePolicy(str, Enum):
    """What the extractor does with an offer whose price parsed to 0.0."""
    KEEP = "keep"   # offer kept with price 0.0, attributes still matchable
    DROP = "drop"   # offer discarded


class CardPartition(str, Enum):
    """Storage partition for a saved card."""
    COLLECTION = "collection"
    WISHLIST = "wishlist"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Central configuration for the offer finder.

    Loads from environment variables with fallback defaults.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # -----------------------------------------------------------------------
    # Database
    # -----------------------------------------------------------------------
    DATABASE_URL: str = "sqlite+aiosqlite:///./cardmarket_app.db"

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"

    # -----------------------------------------------------------------------
    # Browser launch
    # -----------------------------------------------------------------------
    BROWSER_HEADLESS: bool = True
    BROWSER_EXECUTABLE_PATH: str = ""       # Overrides executable discovery when set
    PROXY_URL: str = ""

    # -----------------------------------------------------------------------
    # Page session timing
    # -----------------------------------------------------------------------
    NAVIGATION_TIMEOUT_MS: int = 60_000
    BOT_CHECK_WINDOW_SECONDS: float = 20.0
    BOT_CHECK_POLL_SECONDS: float = 1.0
    CONSENT_CLICK_TIMEOUT_MS: int = 2_000
    LOAD_MORE_SETTLE_SECONDS: float = 5.0
    SCROLL_SETTLE_SECONDS: float = 2.0

    # -----------------------------------------------------------------------
    # Extraction
    # -----------------------------------------------------------------------
    EXTRACTION_TIMEOUT_SECONDS: float = 30.0
    ENRICH_TIMEOUT_MS: int = 3_000
    RAW_SCAN_MAX_OFFERS: int = 10
    ZERO_PRICE_POLICY: ZeroPricePolicy = ZeroPricePolicy.KEEP

    # -----------------------------------------------------------------------
    # Matching
    # -----------------------------------------------------------------------
    MATCHER_ALLOW_FALLBACK: bool = False    # Bulk / best-price discovery only

    # -----------------------------------------------------------------------
    # Acquisition ladder
    # -----------------------------------------------------------------------
    ATTEMPT_TIMEOUT_SECONDS: float = 120.0
    BACKOFF_BASE_SECONDS: float = 3.0
    BACKOFF_MAX_SECONDS: float = 12.0

    # -----------------------------------------------------------------------
    # Rate limiting
    # -----------------------------------------------------------------------
    SCRAPE_MAX_PAGES_PER_HOUR: int = 30
    SCRAPE_DELAY_MIN_SECONDS: int = 2
    SCRAPE_DELAY_MAX_SECONDS: int = 8


# Singleton instance
settings = Settings()
