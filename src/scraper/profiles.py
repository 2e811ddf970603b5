"""
Cardmarket Offer Finder — Browser Configuration Table

Anti-automation defenses and lazy content loading are intermittent, so a
lookup that fails under one browser fingerprint often succeeds under
another. Every variant is one row of this table; the runner walks the rows
in order, crossed with LOAD_DEPTHS.

Profiles:
- standard:   sandbox kept, automation flag hidden, 90s budget
- permissive: standard + sandbox / GPU acceleration disabled, longer
              "patient" waits, 120s budget
- minimal:    bare flag set, bundled browser only, 60s budget
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from src.config import settings
from src.scraper import LoadDepth


class ExecutablePolicy(str, Enum):
    """Where the launcher looks for a browser binary."""
    BUNDLED = "bundled"                     # Playwright-managed Chromium only
    SYSTEM = "system"                       # Installed Chrome / Chromium / Edge only
    SYSTEM_THEN_BUNDLED = "system_then_bundled"


class BrowserProfile(BaseModel):
    """One row of the browser configuration table."""
    model_config = ConfigDict(frozen=True)

    name: str
    launch_args: tuple[str, ...] = ()
    headless: bool = True
    user_agent: str | None = None           # None -> rotated by AntiDetect
    executable_policy: ExecutablePolicy = ExecutablePolicy.BUNDLED
    navigation_timeout_ms: int = 60_000
    bot_check_window_seconds: float = 20.0
    load_more_settle_seconds: float = 5.0
    pre_extract_delay_seconds: float = 0.0  # Extra "patience" before reading the DOM
    attempt_timeout_seconds: float = 120.0


LOAD_DEPTHS: tuple[LoadDepth, ...] = (LoadDepth.SHALLOW, LoadDepth.EXPANDED)

_STANDARD_ARGS: tuple[str, ...] = (
    "--disable-blink-features=AutomationControlled",
    "--disable-features=VizDisplayCompositor",
    "--disable-extensions",
    "--disable-default-apps",
    "--disable-sync",
    "--disable-translate",
    "--disable-background-networking",
    "--disable-client-side-phishing-detection",
    "--disable-component-update",
    "--disable-hang-monitor",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--no-first-run",
    "--no-default-browser-check",
)

_PERMISSIVE_EXTRA_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-accelerated-2d-canvas",
    "--disable-accelerated-jpeg-decoding",
    "--disable-accelerated-mjpeg-decode",
    "--disable-accelerated-video-decode",
)

_MINIMAL_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--disable-plugins",
    "--disable-blink-features=AutomationControlled",
)


def default_profiles() -> tuple[BrowserProfile, ...]:
    """Build the ordered profile table from current settings."""
    headless = settings.BROWSER_HEADLESS
    window = settings.BOT_CHECK_WINDOW_SECONDS
    settle = settings.LOAD_MORE_SETTLE_SECONDS

    return (
        BrowserProfile(
            name="standard",
            launch_args=_STANDARD_ARGS,
            headless=headless,
            executable_policy=ExecutablePolicy.SYSTEM_THEN_BUNDLED,
            navigation_timeout_ms=settings.NAVIGATION_TIMEOUT_MS,
            bot_check_window_seconds=window,
            load_more_settle_seconds=settle,
            attempt_timeout_seconds=90.0,
        ),
        BrowserProfile(
            name="permissive",
            launch_args=_STANDARD_ARGS + _PERMISSIVE_EXTRA_ARGS,
            headless=headless,
            executable_policy=ExecutablePolicy.SYSTEM_THEN_BUNDLED,
            navigation_timeout_ms=settings.NAVIGATION_TIMEOUT_MS * 2,
            bot_check_window_seconds=window * 1.5,
            load_more_settle_seconds=settle * 2,
            pre_extract_delay_seconds=3.0,
            attempt_timeout_seconds=settings.ATTEMPT_TIMEOUT_SECONDS,
        ),
        BrowserProfile(
            name="minimal",
            launch_args=_MINIMAL_ARGS,
            headless=True,
            user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
            executable_policy=ExecutablePolicy.BUNDLED,
            navigation_timeout_ms=settings.NAVIGATION_TIMEOUT_MS,
            bot_check_window_seconds=window,
            load_more_settle_seconds=settle,
            attempt_timeout_seconds=60.0,
        ),
    )
