"""
Fake Playwright page / element objects and a scripted BrowserLauncher.

No real browser is ever started in tests.
"""

from __future__ import annotations

import asyncio
from typing import Any

from src.scraper.extractor import (
    CONDITION_SELECTOR,
    FIRST_EDITION_SELECTOR,
    LANGUAGE_ICON_SELECTOR,
    PAGE_RARITY_SELECTOR,
    PAGE_SET_SELECTOR,
    PRICE_SELECTOR,
    ROW_SELECTOR,
    TABLE_ROW_SELECTOR,
)
from src.scraper.launcher import BrowserSession
from src.scraper.profiles import BrowserProfile


class FakeElement:
    """Minimal stand-in for a Playwright ElementHandle."""

    def __init__(
        self,
        text: str = "",
        attrs: dict[str, str] | None = None,
        children: dict[str, list[FakeElement]] | None = None,
        visible: bool = True,
        click_error: Exception | None = None,
    ) -> None:
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.visible = visible
        self.click_error = click_error
        self.clicks = 0

    async def inner_text(self) -> str:
        return self.text

    async def get_attribute(self, name: str) -> str | None:
        return self.attrs.get(name)

    async def query_selector(self, selector: str) -> FakeElement | None:
        matches = self.children.get(selector) or []
        return matches[0] if matches else None

    async def query_selector_all(self, selector: str) -> list[FakeElement]:
        return list(self.children.get(selector) or [])

    async def is_visible(self) -> bool:
        return self.visible

    async def scroll_into_view_if_needed(self, timeout: float | None = None) -> None:
        return None

    async def click(self, timeout: float | None = None) -> None:
        self.clicks += 1
        if self.click_error is not None:
            raise self.click_error


class FakePage:
    """Minimal stand-in for a Playwright async Page."""

    def __init__(
        self,
        selectors: dict[str, list[FakeElement]] | None = None,
        title: str = "Cardmarket",
        titles: list[str] | None = None,
        evaluate_result: Any = None,
        goto_error: Exception | None = None,
        goto_hangs: bool = False,
    ) -> None:
        self.selectors = selectors or {}
        self._title = title
        self._titles = list(titles or [])
        self.evaluate_result = evaluate_result
        self.goto_error = goto_error
        self.goto_hangs = goto_hangs
        self.goto_started = asyncio.Event()
        self.visited: list[str] = []
        self.scripts: list[str] = []
        self.closed = False

    async def goto(self, url: str, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.visited.append(url)
        self.goto_started.set()
        if self.goto_hangs:
            await asyncio.Event().wait()
        if self.goto_error is not None:
            raise self.goto_error

    async def title(self) -> str:
        if self._titles:
            return self._titles.pop(0)
        return self._title

    async def query_selector(self, selector: str) -> FakeElement | None:
        matches = self.selectors.get(selector) or []
        return matches[0] if matches else None

    async def query_selector_all(self, selector: str) -> list[FakeElement]:
        return list(self.selectors.get(selector) or [])

    async def evaluate(self, script: str, *args: Any) -> Any:
        self.scripts.append(script)
        if "scrollTo" in script:
            return None
        return self.evaluate_result

    def set_default_timeout(self, timeout: float) -> None:
        return None

    async def close(self) -> None:
        self.closed = True


def article_row(
    condition: str,
    language: str,
    price: str,
    first_edition: bool = False,
) -> FakeElement:
    """One Cardmarket .article-row with badge, language icon and price."""
    children: dict[str, list[FakeElement]] = {
        CONDITION_SELECTOR: [FakeElement(text=condition)],
        LANGUAGE_ICON_SELECTOR: [FakeElement(attrs={"data-bs-original-title": language})],
        PRICE_SELECTOR: [FakeElement(text=price)],
    }
    if first_edition:
        children[FIRST_EDITION_SELECTOR] = [FakeElement(attrs={"title": "First Edition"})]
    return FakeElement(text=f"{condition} {language} {price}", children=children)


def listing_page(
    rows: list[FakeElement] | None = None,
    table_rows: list[str] | None = None,
    heading: str | None = "Dracaufeu",
    rarity: str | None = "Holo Rare",
    set_label: str | None = "Set de Base",
    **kwargs: Any,
) -> FakePage:
    """A product page with semantic rows and/or a plain table of prices."""
    selectors: dict[str, list[FakeElement]] = {}
    if rows:
        selectors[ROW_SELECTOR] = rows
    if table_rows:
        selectors[TABLE_ROW_SELECTOR] = [FakeElement(text=t) for t in table_rows]
    if heading is not None:
        selectors["h1"] = [FakeElement(text=f"  {heading}  ")]
    if rarity is not None:
        icon = FakeElement(attrs={"data-bs-original-title": rarity})
        selectors[PAGE_RARITY_SELECTOR] = [icon]
    if set_label is not None:
        link = FakeElement(text=set_label)
        selectors[PAGE_SET_SELECTOR] = [link]
    return FakePage(selectors=selectors, **kwargs)


class FakeLauncher:
    """
    Scripted BrowserLauncher.

    Each launch() pops the next entry: a FakePage becomes a session, an
    exception is raised as-is.
    """

    def __init__(self, script: list[FakePage | Exception]) -> None:
        self.script = list(script)
        self.sessions: list[BrowserSession] = []
        self.launched_profiles: list[str] = []

    async def launch(self, profile: BrowserProfile) -> BrowserSession:
        self.launched_profiles.append(profile.name)
        entry = self.script.pop(0)
        if isinstance(entry, Exception):
            raise entry
        session = BrowserSession(page=entry, profile_name=profile.name)
        self.sessions.append(session)
        return session


def make_profile(name: str, **overrides: Any) -> BrowserProfile:
    values: dict[str, Any] = {
        "name": name,
        "navigation_timeout_ms": 1_000,
        "bot_check_window_seconds": 2.0,
        "load_more_settle_seconds": 0.0,
        "attempt_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return BrowserProfile(**values)
