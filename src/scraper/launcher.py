"""
Cardmarket Offer Finder — Browser Launcher

The only place that knows how a browser process is found and started.
The runner depends on the BrowserLauncher protocol; PlaywrightLauncher is
the production implementation and tests inject a fake.

Every BrowserSession owns one browser process exclusively and must be
closed by the attempt that launched it.
"""

from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path
from typing import Any, Protocol

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from src.config import settings
from src.scraper.anti_detect import AntiDetect
from src.scraper.errors import EnvironmentUnavailable
from src.scraper.profiles import BrowserProfile, ExecutablePolicy

logger = structlog.get_logger(__name__)


class BrowserSession:
    """
    One live browser page plus the handles needed to tear it down.

    Usage:
        async with await launcher.launch(profile) as session:
            await session.page.goto(url)
    """

    def __init__(
        self,
        page: Any,
        profile_name: str,
        context: Any = None,
        browser: Any = None,
        driver: Any = None,
    ) -> None:
        self.page = page
        self.profile_name = profile_name
        self._context = context
        self._browser = browser
        self._driver = driver
        self.closed = False

    async def close(self) -> None:
        """Close page, context, browser and driver. Safe to call twice."""
        if self.closed:
            return
        self.closed = True

        for name, handle, method in (
            ("page", self.page, "close"),
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("driver", self._driver, "stop"),
        ):
            if handle is None:
                continue
            try:
                await getattr(handle, method)()
            except Exception as e:
                logger.debug(
                    "browser_session_close_failed",
                    handle=name,
                    profile=self.profile_name,
                    error=str(e),
                )

        logger.debug("browser_session_closed", profile=self.profile_name)

    async def __aenter__(self) -> BrowserSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class BrowserLauncher(Protocol):
    """Capability that turns a BrowserProfile into a live session."""

    async def launch(self, profile: BrowserProfile) -> BrowserSession:
        """Start a browser under profile. Raises EnvironmentUnavailable."""
        ...


# ---------------------------------------------------------------------------
# Executable discovery (host plumbing)
# ---------------------------------------------------------------------------

def _windows_candidates() -> list[Path]:
    roots = [
        os.environ.get("ProgramFiles", ""),
        os.environ.get("ProgramFiles(x86)", ""),
        os.environ.get("LOCALAPPDATA", ""),
    ]
    suffixes = [
        ("Google", "Chrome", "Application", "chrome.exe"),
        ("Google", "Chrome SxS", "Application", "chrome.exe"),
        ("Chromium", "Application", "chrome.exe"),
        ("Microsoft", "Edge", "Application", "msedge.exe"),
    ]
    # Chrome before Edge, across every install root
    return [Path(root, *suffix) for suffix in suffixes for root in roots if root]


def _macos_candidates() -> list[Path]:
    return [
        Path("/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"),
        Path("/Applications/Chromium.app/Contents/MacOS/Chromium"),
        Path("/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge"),
    ]


_LINUX_BINARIES = (
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "microsoft-edge",
)


def find_browser_executable() -> str | None:
    """
    Locate an installed Chromium-based browser on this machine.

    BROWSER_EXECUTABLE_PATH wins when set. Returns None when nothing usable
    is installed.
    """
    if settings.BROWSER_EXECUTABLE_PATH:
        return settings.BROWSER_EXECUTABLE_PATH

    if sys.platform.startswith("win"):
        candidates = _windows_candidates()
    elif sys.platform == "darwin":
        candidates = _macos_candidates()
    else:
        candidates = [Path(p) for p in filter(None, map(shutil.which, _LINUX_BINARIES))]

    for path in candidates:
        if path.is_file() and os.access(path, os.X_OK | os.R_OK):
            logger.info("browser_executable_found", path=str(path), browser=path.name)
            return str(path)

    logger.info("browser_executable_not_found", platform=sys.platform)
    return None


def resolve_executable(policy: ExecutablePolicy) -> str | None:
    """
    Apply a profile's discovery policy.

    Returns a path for SYSTEM / SYSTEM_THEN_BUNDLED when one is found, None
    to let Playwright use its bundled Chromium.

    Raises:
        EnvironmentUnavailable: SYSTEM policy and no installed browser.
    """
    if policy == ExecutablePolicy.BUNDLED:
        return None

    path = find_browser_executable()
    if path is None and policy == ExecutablePolicy.SYSTEM:
        raise EnvironmentUnavailable("no system browser installed")
    return path


# ---------------------------------------------------------------------------
# Playwright implementation
# ---------------------------------------------------------------------------

class PlaywrightLauncher:
    """Launches Chromium through Playwright's async API."""

    def __init__(self, anti_detect: AntiDetect | None = None) -> None:
        self.anti_detect = anti_detect or AntiDetect()

    async def launch(self, profile: BrowserProfile) -> BrowserSession:
        executable_path = resolve_executable(profile.executable_policy)
        user_agent = profile.user_agent or self.anti_detect.get_random_user_agent()

        logger.info(
            "browser_launch_start",
            profile=profile.name,
            headless=profile.headless,
            executable_path=executable_path or "bundled",
        )

        driver = await async_playwright().start()
        try:
            browser = await driver.chromium.launch(
                headless=profile.headless,
                args=list(profile.launch_args),
                executable_path=executable_path,
                proxy=self.anti_detect.get_proxy_config(),
                timeout=profile.navigation_timeout_ms,
            )
            context = await browser.new_context(
                user_agent=user_agent,
                viewport={"width": 1920, "height": 1080},
                locale="en-US",
            )
            page = await context.new_page()
            page.set_default_timeout(profile.navigation_timeout_ms)
        except PlaywrightError as e:
            await driver.stop()
            logger.error("browser_launch_failed", profile=profile.name, error=str(e))
            raise EnvironmentUnavailable(f"profile {profile.name!r}: {e}") from e
        except BaseException:
            await driver.stop()
            raise

        return BrowserSession(
            page=page,
            profile_name=profile.name,
            context=context,
            browser=browser,
            driver=driver,
        )
