"""
SQLAlchemy 2.0 async DeclarativeBase for the offer finder.

All models inherit from this Base.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all offer finder database models."""
    pass
