"""
Ledgerline - Journal Models

Double-entry journal documents, their lines, and the per-scope sequence
counters used to number them.

Lifecycle: draft -> temporary -> permanent. A permanent journal is never
edited in place; it can only be offset by a reversal journal.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    BigInteger, Date, ForeignKey, Integer, Numeric, String, Enum as SQLEnum,
    UniqueConstraint, Index, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.fiscal_year import FiscalYear
    from app.models.taxonomy import Code, Detail


# Tolerance used everywhere debits are compared with credits.
BALANCE_EPSILON = Decimal("0.0001")


class JournalStatus(str, Enum):
    """Journal lifecycle states."""
    DRAFT = "draft"
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class Journal(BaseModel):
    """Ledger document made of balanced debit/credit lines."""

    __tablename__ = "journals"

    fiscal_year_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("fiscal_years.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    ref_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    serial_no: Mapped[Optional[int]] = mapped_column(Integer, unique=True, nullable=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    provider: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[JournalStatus] = mapped_column(
        SQLEnum(JournalStatus),
        default=JournalStatus.DRAFT,
        nullable=False,
    )

    fiscal_year: Mapped["FiscalYear"] = relationship("FiscalYear", back_populates="journals")
    items: Mapped[List["JournalItem"]] = relationship(
        "JournalItem",
        back_populates="journal",
        cascade="all, delete-orphan",
        order_by="JournalItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "ref_no", name="uq_journals_fiscal_year_ref_no"),
        Index("ix_journals_fiscal_year_code", "fiscal_year_id", "code"),
        Index("ix_journals_fiscal_year_date", "fiscal_year_id", "date"),
        Index("ix_journals_status", "status"),
    )

    @property
    def total_debit(self) -> Decimal:
        return sum((item.debit for item in self.items), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((item.credit for item in self.items), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) <= BALANCE_EPSILON

    def __repr__(self) -> str:
        return f"<Journal({self.ref_no or self.id}: {self.status.value})>"


class JournalItem(BaseModel):
    """Single debit or credit line of a journal."""

    __tablename__ = "journal_items"

    journal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("journals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("codes.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    detail_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    # Parties live in the reference-data service; no FK here.
    party_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    debit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    credit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    journal: Mapped["Journal"] = relationship("Journal", back_populates="items")
    code: Mapped["Code"] = relationship("Code", back_populates="journal_items")
    detail: Mapped[Optional["Detail"]] = relationship("Detail")

    __table_args__ = (
        CheckConstraint("debit >= 0", name="debit_non_negative"),
        CheckConstraint("credit >= 0", name="credit_non_negative"),
    )


class SequenceCounter(BaseModel):
    """
    Last number handed out for one numbering scope, e.g.
    ``journal.ref_no:<fiscal_year_id>``. The row is locked while a new
    number is computed so concurrent allocations in one scope serialize.
    """

    __tablename__ = "sequence_counters"

    scope: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    last_value: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
