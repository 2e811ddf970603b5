"""
Cardmarket Offer Finder — Card Store

Collection and wishlist persistence on top of the Card model.

add_card() is the only operation that touches the network: a URL that is
already stored is never scraped again, it is either rejected (same
partition) or moved (other partition).
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import CardPartition
from src.models.card import Card
from src.scraper import MatchCriteria, ScrapeResult
from src.scraper.errors import CardAlreadyExists
from src.scraper.runner import ScraperRunner

logger = structlog.get_logger(__name__)


class AddCardRequest(BaseModel):
    """A listing URL plus the offer attributes the caller wants."""
    model_config = ConfigDict(frozen=True)

    url: str
    partition: CardPartition = CardPartition.COLLECTION
    condition_grade: str
    language: str
    is_first_edition: bool = False

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url must not be empty")
        return value

    @property
    def criteria(self) -> MatchCriteria:
        return MatchCriteria(
            condition_grade=self.condition_grade,
            language=self.language,
            is_first_edition=self.is_first_edition,
        )


class CardStats(BaseModel):
    collection_count: int = 0
    wishlist_count: int = 0
    collection_value: float = 0.0
    wishlist_value: float = 0.0
    total_cards: int = 0
    total_value: float = 0.0


async def get_card(session: AsyncSession, card_id: int) -> Card | None:
    return await session.get(Card, card_id)


async def get_card_by_url(session: AsyncSession, card_url: str) -> Card | None:
    result = await session.execute(select(Card).where(Card.card_url == card_url))
    return result.scalar_one_or_none()


async def add_card(
    session: AsyncSession,
    request: AddCardRequest,
    runner: ScraperRunner,
) -> Card:
    """
    Save a listing into a partition.

    Args:
        session: Async database session.
        request: URL, target partition and match criteria.
        runner: Scraper used when the URL is new.

    Returns:
        The inserted or moved Card.

    Raises:
        CardAlreadyExists: URL already stored in the requested partition.
        NoMatchingOfferFound / EnvironmentUnavailable / RateLimited: From
            the scrape; nothing is written.
    """
    partition = request.partition.value

    existing = await get_card_by_url(session, request.url)
    if existing is not None:
        if existing.partition == partition:
            logger.info("card_add_duplicate", card_id=existing.id, partition=partition)
            raise CardAlreadyExists(request.url, partition)

        logger.info(
            "card_add_moved",
            card_id=existing.id,
            from_partition=existing.partition,
            to_partition=partition,
        )
        return await move_card(session, existing.id, request.partition)

    result = await runner.find_offer(request.url, request.criteria)

    card = Card(
        name=result.display_name,
        set_name=result.set_label,
        rarity=result.rarity,
        price=result.chosen_offer.price_display,
        price_num=result.chosen_offer.price_value,
        image_url=result.image_url,
        card_url=request.url,
        partition=partition,
        quality=request.condition_grade,
        language=request.language,
        is_first_edition=request.is_first_edition,
        total_offers=result.offer_count,
        added_at=datetime.now(timezone.utc),
        last_updated=datetime.now(timezone.utc),
    )
    session.add(card)
    await session.commit()
    await session.refresh(card)

    logger.info(
        "card_added",
        card_id=card.id,
        name=card.name,
        partition=partition,
        price=card.price,
    )
    return card


async def list_cards(session: AsyncSession, partition: CardPartition) -> list[Card]:
    """Cards of one partition, most recently added first."""
    result = await session.execute(
        select(Card)
        .where(Card.partition == partition.value)
        .order_by(Card.added_at.desc(), Card.id.desc())
    )
    return list(result.scalars().all())


async def delete_card(session: AsyncSession, card_id: int) -> bool:
    """Delete a card. Returns False when the id does not exist."""
    card = await get_card(session, card_id)
    if card is None:
        logger.info("card_delete_missing", card_id=card_id)
        return False

    await session.delete(card)
    await session.commit()
    logger.info("card_deleted", card_id=card_id)
    return True


async def move_card(session: AsyncSession, card_id: int, partition: CardPartition) -> Card:
    """
    Move a card to the other partition.

    Raises:
        LookupError: No card with that id.
    """
    card = await get_card(session, card_id)
    if card is None:
        raise LookupError(f"No card with id {card_id}")

    card.partition = partition.value
    card.last_updated = datetime.now(timezone.utc)
    await session.commit()
    await session.refresh(card)

    logger.info("card_moved", card_id=card_id, partition=partition.value)
    return card


async def get_stats(session: AsyncSession) -> CardStats:
    """Card count and summed price per partition, plus totals."""
    result = await session.execute(
        select(Card.partition, func.count(Card.id), func.coalesce(func.sum(Card.price_num), 0.0))
        .group_by(Card.partition)
    )
    per_partition = {row[0]: (int(row[1]), float(row[2])) for row in result.all()}

    collection_count, collection_value = per_partition.get(CardPartition.COLLECTION.value, (0, 0.0))
    wishlist_count, wishlist_value = per_partition.get(CardPartition.WISHLIST.value, (0, 0.0))

    return CardStats(
        collection_count=collection_count,
        wishlist_count=wishlist_count,
        collection_value=collection_value,
        wishlist_value=wishlist_value,
        total_cards=collection_count + wishlist_count,
        total_value=collection_value + wishlist_value,
    )


async def total_value(session: AsyncSession) -> float:
    """Sum of price_num over every stored card."""
    result = await session.execute(select(func.coalesce(func.sum(Card.price_num), 0.0)))
    return float(result.scalar_one())


async def apply_scrape_result(session: AsyncSession, card_id: int, result: ScrapeResult) -> Card:
    """
    Refresh a stored card's price and display fields from a new scrape.

    Raises:
        LookupError: No card with that id.
    """
    card = await get_card(session, card_id)
    if card is None:
        raise LookupError(f"No card with id {card_id}")

    card.name = result.display_name
    card.set_name = result.set_label
    card.rarity = result.rarity
    card.price = result.chosen_offer.price_display
    card.price_num = result.chosen_offer.price_value
    card.image_url = result.image_url
    card.total_offers = result.offer_count
    card.last_updated = datetime.now(timezone.utc)
    await session.commit()
    await session.refresh(card)

    logger.info("card_price_refreshed", card_id=card_id, price=card.price)
    return card
