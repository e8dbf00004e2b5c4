"""
Ledgerline - Base Model

Base model class and mixins for all SQLAlchemy models.
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, and_, cast, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class BaseModel(Base, TimestampMixin):
    """
    Abstract base model with UUID primary key and timestamps.
    All models should inherit from this class.
    """

    __abstract__ = True
    # Server-generated timestamps come back with the INSERT/UPDATE
    # so async sessions never lazy-load them afterwards.
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"


DIGITS = "0123456789"
# Longest digit string that still fits a BIGINT
MAX_NUMERIC_DIGITS = 18


def is_numeric_text(column):
    """
    SQL predicate: the text column holds only ASCII digits, at most
    MAX_NUMERIC_DIGITS of them.

    ltrim(x, '0123456789') is empty exactly when x is all digits, and
    it behaves the same on PostgreSQL and SQLite.
    """
    return and_(
        column.is_not(None),
        column != "",
        func.length(column) <= MAX_NUMERIC_DIGITS,
        func.ltrim(column, DIGITS) == "",
    )


def numeric_value(column):
    """BIGINT value of a text column already filtered by is_numeric_text."""
    return cast(column, BigInteger)
