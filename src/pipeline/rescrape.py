"""
Cardmarket Offer Finder — Batch Rescrape

Replays the acquisition ladder over every stored card, one listing at a
time, with the criteria each card was saved with. A card that fails keeps
its previous price; the failure is counted and reported, never raised.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.card import Card
from src.pipeline.card_store import apply_scrape_result, get_card
from src.scraper import MatchCriteria
from src.scraper.errors import RateLimited, ScraperError
from src.scraper.runner import ScraperRunner

logger = structlog.get_logger(__name__)


class RescrapeStats(BaseModel):
    total_cards: int = 0
    updated: int = 0
    errors: int = 0
    error_details: list[str] = Field(default_factory=list)


def _criteria_for(card: Card) -> MatchCriteria:
    return MatchCriteria(
        condition_grade=card.quality,
        language=card.language,
        is_first_edition=card.is_first_edition,
    )


async def update_card_price(session: AsyncSession, card_id: int, runner: ScraperRunner) -> Card:
    """
    Rescrape one stored card and persist the new price.

    Raises:
        LookupError: No card with that id.
        ScraperError: Any terminal scraper outcome; the card is untouched.
    """
    card = await get_card(session, card_id)
    if card is None:
        raise LookupError(f"No card with id {card_id}")

    result = await runner.find_offer(card.card_url, _criteria_for(card))
    return await apply_scrape_result(session, card_id, result)


async def rescrape_all_cards(session: AsyncSession, runner: ScraperRunner) -> RescrapeStats:
    """
    Refresh every stored card, oldest id first.

    A RateLimited outcome stops the batch: every remaining card is counted
    as an error with the same reason.

    Returns:
        RescrapeStats with per-card error messages.
    """
    result = await session.execute(select(Card.id).order_by(Card.id))
    card_ids = list(result.scalars().all())

    stats = RescrapeStats(total_cards=len(card_ids))
    logger.info("rescrape_started", total_cards=stats.total_cards)

    for index, card_id in enumerate(card_ids):
        logger.info("rescrape_card", card_id=card_id, position=index + 1, total=stats.total_cards)
        try:
            card = await update_card_price(session, card_id, runner)
        except RateLimited as e:
            remaining = card_ids[index:]
            stats.errors += len(remaining)
            stats.error_details.extend(f"Card {cid}: {e}" for cid in remaining)
            logger.warning("rescrape_rate_limited", skipped=len(remaining))
            break
        except (ScraperError, LookupError) as e:
            stats.errors += 1
            stats.error_details.append(f"Card {card_id}: {e}")
            logger.warning("rescrape_card_failed", card_id=card_id, error=str(e))
            continue

        stats.updated += 1
        logger.info("rescrape_card_updated", card_id=card_id, price=card.price, name=card.name)

    logger.info(
        "rescrape_complete",
        total_cards=stats.total_cards,
        updated=stats.updated,
        errors=stats.errors,
    )
    return stats
