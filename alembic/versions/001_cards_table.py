"""Create cards table

Revision ID: 001_cards_table
Revises:
Create Date: 2026-10-18

Adds:
  - cards table (collection and wishlist partitions share one table)
  - unique index on card_url: one row per listing across both partitions
  - index on partition for the per-partition listing and stats queries
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001_cards_table"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("set_name", sa.String(), nullable=False),
        sa.Column("rarity", sa.String(), nullable=False),
        sa.Column("price", sa.String(), nullable=False),
        sa.Column("price_num", sa.Float(), nullable=False, server_default="0"),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("card_url", sa.String(), nullable=False),
        sa.Column("partition", sa.String(), nullable=False, server_default="collection"),
        sa.Column("quality", sa.String(), nullable=False),
        sa.Column("language", sa.String(), nullable=False),
        sa.Column("is_first_edition", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_offers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "added_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "last_updated",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_cards_card_url", "cards", ["card_url"], unique=True)
    op.create_index("ix_cards_partition", "cards", ["partition"])


def downgrade() -> None:
    op.drop_index("ix_cards_partition", table_name="cards")
    op.drop_index("ix_cards_card_url", table_name="cards")
    op.drop_table("cards")
