"""
Ledgerline - Treasury Models

Cash and bank resources (cashboxes, bank accounts, card readers,
checkbooks, checks), the polymorphic instrument link table, and the
receipt/payment documents that the treasury bridge turns into journals.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean, Date, ForeignKey, Integer, Numeric, String, Text, Enum as SQLEnum,
    UniqueConstraint, Index, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


# =============================================================================
# ENUMS
# =============================================================================

class CheckType(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class CheckStatus(str, Enum):
    """
    Outgoing checks start as ISSUED; incoming checks start as CREATED and
    move to INCASHBOX once a receipt lands them in a cashbox. Either kind
    becomes SPENT when a payment uses it.
    """
    CREATED = "created"
    ISSUED = "issued"
    INCASHBOX = "incashbox"
    SPENT = "spent"


class CheckbookStatus(str, Enum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class LinkType(str, Enum):
    """Instrument kinds that point at a concrete resource."""
    CARD = "card"
    TRANSFER = "transfer"
    CHECK = "check"


class ReceiptInstrument(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CHECK = "check"


class PaymentInstrument(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    CHECK = "check"      # outgoing check from one of our checkbooks
    CHECKIN = "checkin"  # endorsing a received check over to the payee


class TreasuryDocumentStatus(str, Enum):
    TEMPORARY = "temporary"
    SENT = "sent"
    PERMANENT = "permanent"


# =============================================================================
# RESOURCES
# =============================================================================

class Cashbox(BaseModel):
    """Physical cash drawer, mirrored by a system-managed detail."""

    __tablename__ = "cashboxes"

    code: Mapped[str] = mapped_column(String(4), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    handler_detail_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    starting_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    starting_date: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True)


class BankAccount(BaseModel):
    """Bank account, mirrored by a system-managed detail."""

    __tablename__ = "bank_accounts"

    account_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    kind_of_account: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    card_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    iban: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    starting_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    starting_date: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True)
    handler_detail_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="SET NULL"),
        nullable=True,
    )

    checkbooks: Mapped[List["Checkbook"]] = relationship(
        "Checkbook",
        back_populates="bank_account",
    )
    card_readers: Mapped[List["CardReader"]] = relationship(
        "CardReader",
        back_populates="bank_account",
    )


class CardReader(BaseModel):
    """POS terminal settling into a bank account."""

    __tablename__ = "card_readers"

    bank_account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bank_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    psp_provider: Mapped[str] = mapped_column(String(100), nullable=False)
    terminal_id: Mapped[str] = mapped_column(String(50), nullable=False)
    merchant_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    device_serial: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    handler_detail_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="SET NULL"),
        nullable=True,
    )

    bank_account: Mapped["BankAccount"] = relationship("BankAccount", back_populates="card_readers")


class Checkbook(BaseModel):
    """Serial range of outgoing checks for a bank account."""

    __tablename__ = "checkbooks"

    bank_account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bank_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    series: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    start_number: Mapped[int] = mapped_column(Integer, nullable=False)
    page_count: Mapped[int] = mapped_column(Integer, nullable=False)
    issue_date: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True)
    received_date: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True)
    status: Mapped[CheckbookStatus] = mapped_column(
        SQLEnum(CheckbookStatus),
        default=CheckbookStatus.ACTIVE,
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    bank_account: Mapped["BankAccount"] = relationship("BankAccount", back_populates="checkbooks")

    __table_args__ = (
        CheckConstraint("page_count > 0", name="page_count_positive"),
    )

    @property
    def end_number(self) -> int:
        return self.start_number + self.page_count - 1


class Check(BaseModel):
    """Incoming (received) or outgoing (issued) check."""

    __tablename__ = "checks"

    type: Mapped[CheckType] = mapped_column(SQLEnum(CheckType), nullable=False)
    checkbook_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("checkbooks.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    issuer: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    beneficiary: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    beneficiary_detail_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    status: Mapped[CheckStatus] = mapped_column(SQLEnum(CheckStatus), nullable=False)
    issue_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True)
    cashbox_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cashboxes.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("checkbook_id", "type", "number", name="uq_checks_checkbook_type_number"),
        Index("ix_checks_status", "status"),
        Index("ix_checks_due_date", "due_date"),
        CheckConstraint("amount > 0", name="amount_positive"),
    )


# =============================================================================
# INSTRUMENT LINKS
# =============================================================================

class InstrumentLink(BaseModel):
    """
    One row per concrete resource a treasury item can point at. Exactly
    one of the three foreign keys is set, matching instrument_type; each
    key is unique so a resource never gets a second link row.
    """

    __tablename__ = "instrument_links"

    instrument_type: Mapped[LinkType] = mapped_column(SQLEnum(LinkType), nullable=False)
    card_reader_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("card_readers.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )
    bank_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bank_accounts.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )
    check_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("checks.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )

    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN card_reader_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN bank_account_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN check_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="exactly_one_target",
        ),
    )

    @property
    def target_id(self) -> Optional[uuid.UUID]:
        return self.card_reader_id or self.bank_account_id or self.check_id


# =============================================================================
# RECEIPTS & PAYMENTS
# =============================================================================

class Receipt(BaseModel):
    """Money received from a counterparty."""

    __tablename__ = "receipts"

    number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[TreasuryDocumentStatus] = mapped_column(
        SQLEnum(TreasuryDocumentStatus),
        default=TreasuryDocumentStatus.TEMPORARY,
        nullable=False,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    fiscal_year_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("fiscal_years.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    detail_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="RESTRICT"),
        nullable=True,
    )
    special_code_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("codes.id", ondelete="RESTRICT"),
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    cashbox_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cashboxes.id", ondelete="RESTRICT"),
        nullable=True,
    )
    journal_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("journals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    items: Mapped[List["ReceiptItem"]] = relationship(
        "ReceiptItem",
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "number", name="uq_receipts_fiscal_year_number"),
    )


class ReceiptItem(BaseModel):
    __tablename__ = "receipt_items"

    receipt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("receipts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    instrument_type: Mapped[ReceiptInstrument] = mapped_column(SQLEnum(ReceiptInstrument), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    related_instrument_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("instrument_links.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    receipt: Mapped["Receipt"] = relationship("Receipt", back_populates="items")
    instrument: Mapped[Optional["InstrumentLink"]] = relationship("InstrumentLink", lazy="selectin")


class Payment(BaseModel):
    """Money paid to a counterparty."""

    __tablename__ = "payments"

    number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[TreasuryDocumentStatus] = mapped_column(
        SQLEnum(TreasuryDocumentStatus),
        default=TreasuryDocumentStatus.TEMPORARY,
        nullable=False,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    fiscal_year_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("fiscal_years.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    detail_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="RESTRICT"),
        nullable=True,
    )
    special_code_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("codes.id", ondelete="RESTRICT"),
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    cashbox_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cashboxes.id", ondelete="RESTRICT"),
        nullable=True,
    )
    journal_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("journals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    items: Mapped[List["PaymentItem"]] = relationship(
        "PaymentItem",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "number", name="uq_payments_fiscal_year_number"),
    )


class PaymentItem(BaseModel):
    __tablename__ = "payment_items"

    payment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    instrument_type: Mapped[PaymentInstrument] = mapped_column(SQLEnum(PaymentInstrument), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    related_instrument_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("instrument_links.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    payment: Mapped["Payment"] = relationship("Payment", back_populates="items")
    instrument: Mapped[Optional["InstrumentLink"]] = relationship("InstrumentLink", lazy="selectin")
