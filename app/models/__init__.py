"""
Ledgerline - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin
from app.models.taxonomy import (
    Code,
    CodeKind,
    CodeNature,
    Detail,
    DetailKind,
    DetailLevel,
    DetailDetailLevel,
    detail_level_specific_codes,
)
from app.models.fiscal_year import FiscalYear
from app.models.journal import Journal, JournalItem, JournalStatus, SequenceCounter
from app.models.invoice import Invoice, InvoiceStatus
from app.models.setting import Setting, SettingType
from app.models.treasury import (
    BankAccount,
    CardReader,
    Cashbox,
    Check,
    Checkbook,
    CheckbookStatus,
    CheckStatus,
    CheckType,
    InstrumentLink,
    LinkType,
    Payment,
    PaymentInstrument,
    PaymentItem,
    Receipt,
    ReceiptInstrument,
    ReceiptItem,
    TreasuryDocumentStatus,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    # Taxonomy
    "Code",
    "CodeKind",
    "CodeNature",
    "Detail",
    "DetailKind",
    "DetailLevel",
    "DetailDetailLevel",
    "detail_level_specific_codes",
    # Fiscal periods
    "FiscalYear",
    # Journals
    "Journal",
    "JournalItem",
    "JournalStatus",
    "SequenceCounter",
    # Documents referencing fiscal years
    "Invoice",
    "InvoiceStatus",
    # Settings
    "Setting",
    "SettingType",
    # Treasury
    "BankAccount",
    "CardReader",
    "Cashbox",
    "Check",
    "Checkbook",
    "CheckbookStatus",
    "CheckStatus",
    "CheckType",
    "InstrumentLink",
    "LinkType",
    "Payment",
    "PaymentInstrument",
    "PaymentItem",
    "Receipt",
    "ReceiptInstrument",
    "ReceiptItem",
    "TreasuryDocumentStatus",
]
