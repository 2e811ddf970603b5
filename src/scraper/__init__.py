"""Cardmarket Offer Finder — Scraper Layer data model"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class LoadDepth(str, Enum):
    """Whether extra on-page content ("load more") is triggered before extraction."""
    SHALLOW = "shallow"
    EXPANDED = "expanded"


class Offer(BaseModel):
    """One sale listing as scraped from a product page."""
    model_config = ConfigDict(frozen=True)

    condition_grade: str = ""
    language: str = ""
    is_first_edition: bool = False
    price_display: str = ""
    price_value: float = 0.0
    rarity: str | None = None
    set_label: str | None = None


class MatchCriteria(BaseModel):
    """Offer attributes the caller explicitly asked for."""
    model_config = ConfigDict(frozen=True)

    condition_grade: str
    language: str
    is_first_edition: bool = False


class ScrapeResult(BaseModel):
    """Structured result of one successful acquisition."""
    model_config = ConfigDict(frozen=True)

    display_name: str
    set_label: str
    rarity: str
    chosen_offer: Offer
    offer_count: int
    image_url: str | None = None
    profile_name: str | None = None
    load_depth: LoadDepth | None = None


class AcquisitionAttempt(BaseModel):
    """Diagnostic record of one (profile, load depth) attempt."""
    profile_name: str
    load_depth: LoadDepth
    success: bool = False
    offer_count: int = 0
    strategy: str | None = None
    reason: str | None = None
