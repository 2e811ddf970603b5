"""
Tests for the page session controller.

Covers navigation failure, bot-check polling and window expiry, consent
selector priority and the "load more" expansion.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.scraper import LoadDepth
from src.scraper.errors import NavigationError
from src.scraper.session import PageSession, SessionState
from fakes import FakeElement, FakePage, make_profile


@pytest.fixture
def profile():
    return make_profile("standard", bot_check_window_seconds=5.0, load_more_settle_seconds=1.5)


class TestNavigate:
    async def test_success_moves_to_navigated(self, profile, fake_sleep: AsyncMock) -> None:
        """A successful goto reaches NAVIGATED."""
        page = FakePage()
        session = PageSession(page, "https://www.cardmarket.com/x", profile, sleep=fake_sleep)
        await session.navigate()
        assert session.state == SessionState.NAVIGATED
        assert page.visited == ["https://www.cardmarket.com/x"]

    async def test_failure_raises_navigation_error(self, profile, fake_sleep: AsyncMock) -> None:
        """Any goto error becomes NavigationError and ends prepare()."""
        page = FakePage(goto_error=RuntimeError("net::ERR_NAME_NOT_RESOLVED"))
        session = PageSession(page, "https://bad.invalid", profile, sleep=fake_sleep)

        with pytest.raises(NavigationError) as exc_info:
            await session.prepare(LoadDepth.SHALLOW)

        assert "ERR_NAME_NOT_RESOLVED" in exc_info.value.reason
        assert session.state == SessionState.UNOPENED


class TestBotCheck:
    async def test_clear_page_does_not_wait(self, profile, fake_sleep: AsyncMock) -> None:
        """No challenge marker means no polling sleep."""
        session = PageSession(FakePage(title="Dracaufeu | Cardmarket"), "u", profile, sleep=fake_sleep)
        assert await session.wait_for_bot_check() is True
        fake_sleep.assert_not_awaited()
        assert session.state == SessionState.BOT_CHECK_CLEARED

    async def test_challenge_clears_after_polls(self, profile, fake_sleep: AsyncMock) -> None:
        """The interstitial title is polled until it goes away."""
        page = FakePage(titles=["Just a moment...", "Just a moment...", "Dracaufeu"])
        session = PageSession(page, "u", profile, sleep=fake_sleep)

        assert await session.wait_for_bot_check() is True
        assert fake_sleep.await_count == 2

    async def test_window_expiry_proceeds(self, profile, fake_sleep: AsyncMock) -> None:
        """A challenge that never clears is waited out, then the session continues."""
        session = PageSession(FakePage(title="Just a moment..."), "u", profile, sleep=fake_sleep)

        assert await session.wait_for_bot_check() is False
        # 5s window at 1s polls
        assert fake_sleep.await_count == 5
        assert session.state == SessionState.BOT_CHECK_CLEARED


class TestConsent:
    async def test_first_priority_selector_wins(self, profile, fake_sleep: AsyncMock) -> None:
        """#denyAll is clicked before any text-based button."""
        deny = FakeElement()
        accept_text = FakeElement()
        page = FakePage(selectors={
            "#denyAll": [deny],
            "button:has-text('Accepter')": [accept_text],
        })
        session = PageSession(page, "u", profile, sleep=fake_sleep)

        assert await session.dismiss_consent() == "#denyAll"
        assert deny.clicks == 1
        assert accept_text.clicks == 0

    async def test_failing_click_falls_through(self, profile, fake_sleep: AsyncMock) -> None:
        """A click that throws moves on to the next selector."""
        broken = FakeElement(click_error=RuntimeError("detached"))
        refuse = FakeElement()
        page = FakePage(selectors={
            "#denyAll": [broken],
            "button:has-text('Refuser')": [refuse],
        })
        session = PageSession(page, "u", profile, sleep=fake_sleep)

        assert await session.dismiss_consent() == "button:has-text('Refuser')"
        assert refuse.clicks == 1

    async def test_hidden_banner_is_skipped(self, profile, fake_sleep: AsyncMock) -> None:
        """Invisible controls are not clicked."""
        hidden = FakeElement(visible=False)
        session = PageSession(FakePage(selectors={"#acceptAll": [hidden]}), "u", profile, sleep=fake_sleep)

        assert await session.dismiss_consent() is None
        assert hidden.clicks == 0
        assert session.state == SessionState.CONSENT_CLEARED


class TestExpandContent:
    async def test_load_more_clicked_and_settled(self, profile, fake_sleep: AsyncMock) -> None:
        """The load-more button is clicked and the settle delay awaited."""
        button = FakeElement()
        page = FakePage(selectors={"#loadMoreButton": [button]})
        session = PageSession(page, "u", profile, sleep=fake_sleep)

        assert await session.expand_content() is True
        assert button.clicks == 1
        fake_sleep.assert_any_await(1.5)
        assert any("scrollTo" in s for s in page.scripts)

    async def test_missing_button_is_fine(self, profile, fake_sleep: AsyncMock) -> None:
        """No load-more control still reaches CONTENT_EXPANDED."""
        session = PageSession(FakePage(), "u", profile, sleep=fake_sleep)
        assert await session.expand_content() is False
        assert session.state == SessionState.CONTENT_EXPANDED


class TestPrepare:
    async def test_shallow_skips_expansion(self, profile, fake_sleep: AsyncMock) -> None:
        """SHALLOW never clicks load-more."""
        button = FakeElement()
        page = FakePage(selectors={"#loadMoreButton": [button]})
        session = PageSession(page, "u", profile, sleep=fake_sleep)

        assert await session.prepare(LoadDepth.SHALLOW) == SessionState.READY
        assert button.clicks == 0

    async def test_expanded_clicks_load_more(self, profile, fake_sleep: AsyncMock) -> None:
        """EXPANDED runs the expansion step."""
        button = FakeElement()
        page = FakePage(selectors={"#loadMoreButton": [button]})
        session = PageSession(page, "u", profile, sleep=fake_sleep)

        assert await session.prepare(LoadDepth.EXPANDED) == SessionState.READY
        assert session.load_more_clicked is True
