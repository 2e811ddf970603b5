"""
Cardmarket Offer Finder — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- Fake sleep for every component that waits
- Short browser profiles for the acquisition ladder
- In-memory aiosqlite database session
- Async test support via pytest-asyncio

Fake Playwright objects live in tests/fakes.py.
"""

from __future__ import annotations

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.models import Base
from src.scraper import LoadDepth
from src.scraper.profiles import BrowserProfile
from fakes import make_profile


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_sleep() -> AsyncMock:
    """Replaces asyncio.sleep everywhere a component accepts `sleep=`."""
    return AsyncMock(return_value=None)


@pytest.fixture
def two_profiles() -> tuple[BrowserProfile, ...]:
    return (make_profile("first"), make_profile("second"))


@pytest.fixture
def depths() -> tuple[LoadDepth, ...]:
    return (LoadDepth.SHALLOW, LoadDepth.EXPANDED)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async database session using aiosqlite in-memory.

    Creates a fresh database for each test, ensuring isolation.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    await engine.dispose()
