"""
Models package — export all SQLAlchemy models.
"""

from src.models.base import Base
from src.models.card import Card

__all__ = ["Base", "Card"]
