"""
Ledgerline - Treasury Schemas

Pydantic schemas for cashboxes, bank accounts, card readers, checkbooks,
checks, and the receipt/payment documents.

Items of receipts and payments carry an ``instrument`` object whose
``type`` selects which resource id must be present:

    {"type": "cash"}
    {"type": "card", "card_reader_id": "..."}
    {"type": "transfer", "bank_account_id": "..."}
    {"type": "check", "check_id": "..."}
    {"type": "checkin", "check_id": "..."}      (payments only)
"""

import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.treasury import (
    CheckbookStatus,
    CheckStatus,
    CheckType,
    LinkType,
    PaymentInstrument,
    ReceiptInstrument,
    TreasuryDocumentStatus,
)


# =============================================================================
# CASHBOXES
# =============================================================================

class CashboxCreate(BaseModel):
    """A missing code is filled with the next free handler code."""
    code: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    is_active: bool = True
    starting_amount: Decimal = Decimal("0.00")
    starting_date: Optional[datetime.date] = None


class CashboxUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_active: Optional[bool] = None
    starting_amount: Optional[Decimal] = None
    starting_date: Optional[datetime.date] = None


class CashboxResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    handler_detail_id: Optional[UUID] = None
    is_active: bool
    starting_amount: Decimal
    starting_date: Optional[datetime.date] = None


# =============================================================================
# BANK ACCOUNTS & CARD READERS
# =============================================================================

class BankAccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    account_number: str = Field(..., min_length=1, max_length=50)
    bank_name: Optional[str] = Field(None, max_length=200)
    kind_of_account: Optional[str] = Field(None, max_length=100)
    card_number: Optional[str] = Field(None, max_length=30)
    iban: Optional[str] = Field(None, max_length=40)
    is_active: bool = True
    starting_amount: Decimal = Decimal("0.00")
    starting_date: Optional[datetime.date] = None


class BankAccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    account_number: Optional[str] = Field(None, min_length=1, max_length=50)
    bank_name: Optional[str] = Field(None, max_length=200)
    kind_of_account: Optional[str] = Field(None, max_length=100)
    card_number: Optional[str] = Field(None, max_length=30)
    iban: Optional[str] = Field(None, max_length=40)
    is_active: Optional[bool] = None
    starting_amount: Optional[Decimal] = None
    starting_date: Optional[datetime.date] = None


class BankAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    account_number: str
    bank_name: Optional[str] = None
    kind_of_account: Optional[str] = None
    card_number: Optional[str] = None
    iban: Optional[str] = None
    is_active: bool
    starting_amount: Decimal
    starting_date: Optional[datetime.date] = None
    handler_detail_id: Optional[UUID] = None


class CardReaderCreate(BaseModel):
    """``bank_account_id`` is taken from the URL."""
    bank_account_id: Optional[UUID] = None
    psp_provider: str = Field(..., min_length=1, max_length=100)
    terminal_id: str = Field(..., min_length=1, max_length=50)
    merchant_id: Optional[str] = Field(None, max_length=50)
    device_serial: Optional[str] = Field(None, max_length=100)
    is_active: bool = True
    description: Optional[str] = None


class CardReaderUpdate(BaseModel):
    bank_account_id: Optional[UUID] = None
    psp_provider: Optional[str] = Field(None, min_length=1, max_length=100)
    terminal_id: Optional[str] = Field(None, min_length=1, max_length=50)
    merchant_id: Optional[str] = Field(None, max_length=50)
    device_serial: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None
    description: Optional[str] = None


class CardReaderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bank_account_id: UUID
    psp_provider: str
    terminal_id: str
    merchant_id: Optional[str] = None
    device_serial: Optional[str] = None
    is_active: bool
    description: Optional[str] = None
    handler_detail_id: Optional[UUID] = None


# =============================================================================
# CHECKBOOKS & CHECKS
# =============================================================================

class CheckbookCreate(BaseModel):
    """``bank_account_id`` is taken from the URL."""
    bank_account_id: Optional[UUID] = None
    series: Optional[str] = Field(None, max_length=50)
    start_number: int = Field(..., ge=1)
    page_count: int = Field(..., ge=1)
    issue_date: Optional[datetime.date] = None
    received_date: Optional[datetime.date] = None
    description: Optional[str] = None


class CheckbookUpdate(BaseModel):
    series: Optional[str] = Field(None, max_length=50)
    page_count: Optional[int] = Field(None, ge=1)
    issue_date: Optional[datetime.date] = None
    received_date: Optional[datetime.date] = None
    status: Optional[CheckbookStatus] = None
    description: Optional[str] = None


class CheckbookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bank_account_id: UUID
    series: Optional[str] = None
    start_number: int
    page_count: int
    end_number: int
    issue_date: Optional[datetime.date] = None
    received_date: Optional[datetime.date] = None
    status: CheckbookStatus
    description: Optional[str] = None


class NumberRange(BaseModel):
    start: int
    end: int


class LastIssuedNumber(BaseModel):
    last_issued_number: Optional[int] = None
    next_suggestion: Optional[int] = None
    range: NumberRange


class OutgoingCheckCreate(BaseModel):
    """Check written from one of our checkbooks; ``checkbook_id`` is taken from the URL."""
    checkbook_id: Optional[UUID] = None
    number: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., gt=0)
    issue_date: datetime.date
    due_date: Optional[datetime.date] = None
    beneficiary: Optional[str] = Field(None, max_length=200)
    beneficiary_detail_id: Optional[UUID] = None
    notes: Optional[str] = None


class IncomingCheckCreate(BaseModel):
    """Check received from a customer."""
    number: str = Field(..., min_length=1, max_length=50)
    amount: Decimal
    bank_name: Optional[str] = Field(None, max_length=200)
    issuer: Optional[str] = Field(None, max_length=200)
    beneficiary: Optional[str] = Field(None, max_length=200)
    beneficiary_detail_id: Optional[UUID] = None
    issue_date: datetime.date
    due_date: Optional[datetime.date] = None
    notes: Optional[str] = None


class CheckUpdate(BaseModel):
    number: Optional[str] = Field(None, min_length=1, max_length=50)
    amount: Optional[Decimal] = Field(None, gt=0)
    issue_date: Optional[datetime.date] = None
    bank_name: Optional[str] = Field(None, max_length=200)
    issuer: Optional[str] = Field(None, max_length=200)
    beneficiary: Optional[str] = Field(None, max_length=200)
    beneficiary_detail_id: Optional[UUID] = None
    due_date: Optional[datetime.date] = None
    notes: Optional[str] = None


class CheckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: CheckType
    checkbook_id: Optional[UUID] = None
    number: str
    bank_name: Optional[str] = None
    issuer: Optional[str] = None
    beneficiary: Optional[str] = None
    beneficiary_detail_id: Optional[UUID] = None
    amount: Decimal
    status: CheckStatus
    issue_date: datetime.date
    due_date: Optional[datetime.date] = None
    cashbox_id: Optional[UUID] = None
    notes: Optional[str] = None


# =============================================================================
# INSTRUMENTS
# =============================================================================

class CashInstrumentIn(BaseModel):
    type: Literal["cash"]


class CardInstrumentIn(BaseModel):
    type: Literal["card"]
    card_reader_id: UUID


class TransferInstrumentIn(BaseModel):
    type: Literal["transfer"]
    bank_account_id: UUID


class CheckInstrumentIn(BaseModel):
    type: Literal["check"]
    check_id: UUID


class CheckinInstrumentIn(BaseModel):
    type: Literal["checkin"]
    check_id: UUID


ReceiptInstrumentIn = Annotated[
    Union[CashInstrumentIn, CardInstrumentIn, TransferInstrumentIn, CheckInstrumentIn],
    Field(discriminator="type"),
]

PaymentInstrumentIn = Annotated[
    Union[CashInstrumentIn, TransferInstrumentIn, CheckInstrumentIn, CheckinInstrumentIn],
    Field(discriminator="type"),
]


class InstrumentLinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    instrument_type: LinkType
    card_reader_id: Optional[UUID] = None
    bank_account_id: Optional[UUID] = None
    check_id: Optional[UUID] = None


# =============================================================================
# RECEIPTS & PAYMENTS
# =============================================================================

class ReceiptItemIn(BaseModel):
    instrument: ReceiptInstrumentIn
    amount: Decimal = Field(..., gt=0)
    reference: Optional[str] = Field(None, max_length=100)


class PaymentItemIn(BaseModel):
    instrument: PaymentInstrumentIn
    amount: Decimal = Field(..., gt=0)
    reference: Optional[str] = Field(None, max_length=100)


class TreasuryDocumentBase(BaseModel):
    date: datetime.date
    number: Optional[str] = Field(None, max_length=50)
    fiscal_year_id: Optional[UUID] = None
    detail_id: Optional[UUID] = None
    special_code_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=500)
    total_amount: Decimal = Field(..., ge=0)
    cashbox_id: Optional[UUID] = None


class ReceiptCreate(TreasuryDocumentBase):
    items: List[ReceiptItemIn] = []


class PaymentCreate(TreasuryDocumentBase):
    items: List[PaymentItemIn] = []


class TreasuryDocumentUpdate(BaseModel):
    """Fields left out keep their value; sending ``items`` replaces them."""
    date: Optional[datetime.date] = None
    number: Optional[str] = Field(None, max_length=50)
    fiscal_year_id: Optional[UUID] = None
    detail_id: Optional[UUID] = None
    special_code_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=500)
    total_amount: Optional[Decimal] = Field(None, ge=0)
    cashbox_id: Optional[UUID] = None


class ReceiptUpdate(TreasuryDocumentUpdate):
    items: Optional[List[ReceiptItemIn]] = None


class PaymentUpdate(TreasuryDocumentUpdate):
    items: Optional[List[PaymentItemIn]] = None


class ReceiptItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    instrument_type: ReceiptInstrument
    amount: Decimal
    reference: Optional[str] = None
    related_instrument_id: Optional[UUID] = None
    instrument: Optional[InstrumentLinkResponse] = None
    position: int


class PaymentItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    instrument_type: PaymentInstrument
    amount: Decimal
    reference: Optional[str] = None
    related_instrument_id: Optional[UUID] = None
    instrument: Optional[InstrumentLinkResponse] = None
    position: int


class TreasuryDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: Optional[str] = None
    status: TreasuryDocumentStatus
    date: datetime.date
    fiscal_year_id: Optional[UUID] = None
    detail_id: Optional[UUID] = None
    special_code_id: Optional[UUID] = None
    description: Optional[str] = None
    total_amount: Decimal
    cashbox_id: Optional[UUID] = None
    journal_id: Optional[UUID] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ReceiptResponse(TreasuryDocumentResponse):
    items: List[ReceiptItemResponse] = []


class PaymentResponse(TreasuryDocumentResponse):
    items: List[PaymentItemResponse] = []
