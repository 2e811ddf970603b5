"""
Cardmarket Offer Finder — Card Model

One saved listing, in either the collection or the wishlist. The row is
the merge of a ScrapeResult, the criteria it was matched with, the listing
URL and the partition it lives in. Rescrapes refresh the price and display
fields in place.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import TIMESTAMP, Boolean, Float, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.config import CardPartition
from src.models.base import Base


class Card(Base):
    """
    Saved card listing.

    card_url is unique across both partitions: adding a URL that already
    sits in the other partition moves the row instead of duplicating it.
    """

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String, nullable=False, comment="Display name read from the listing title"
    )
    set_name: Mapped[str] = mapped_column(
        String, nullable=False, comment="Expansion label, 'Unknown set' when unreadable"
    )
    rarity: Mapped[str] = mapped_column(
        String, nullable=False, comment="Rarity label, 'Unknown rarity' when unreadable"
    )
    price: Mapped[str] = mapped_column(
        String, nullable=False, comment="Price as rendered on the page (e.g., '3,50 €')"
    )
    price_num: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, comment="Normalized numeric price"
    )
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    card_url: Mapped[str] = mapped_column(
        String, nullable=False, unique=True, comment="Cardmarket product listing URL"
    )
    partition: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=CardPartition.COLLECTION.value,
        index=True,
        comment="'collection' or 'wishlist'",
    )
    quality: Mapped[str] = mapped_column(
        String, nullable=False, comment="Requested condition grade (e.g., 'NM')"
    )
    language: Mapped[str] = mapped_column(
        String, nullable=False, comment="Requested card language (e.g., 'French')"
    )
    is_first_edition: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    total_offers: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Offers seen on the last scrape"
    )
    added_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    last_updated: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last price refresh",
    )

    def __repr__(self) -> str:
        return (
            f"<Card id={self.id!r} name={self.name!r} partition={self.partition!r} "
            f"price={self.price!r}>"
        )
