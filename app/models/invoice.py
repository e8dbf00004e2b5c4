"""
Ledgerline - Invoice Model

Sales invoices are managed by the invoicing module; the ledger only
needs to know which fiscal year an invoice belongs to, so that a fiscal
year carrying documents is protected from date edits and deletion.
"""

import uuid
import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class InvoiceStatus(str, Enum):
    """Invoice status workflow."""
    DRAFT = "draft"
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class Invoice(BaseModel):
    """Sales invoice header."""

    __tablename__ = "invoices"

    invoice_no: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    fiscal_year_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("fiscal_years.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus),
        default=InvoiceStatus.DRAFT,
        nullable=False,
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Invoice({self.invoice_no})>"
