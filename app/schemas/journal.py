"""
Ledgerline - Journal Schemas

Pydantic schemas for journals, their lines and the bulk actions.
"""

import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.journal import JournalStatus


# =============================================================================
# ITEMS
# =============================================================================

class JournalItemIn(BaseModel):
    """Schema for a journal line."""
    code_id: UUID
    detail_id: Optional[UUID] = None
    party_id: Optional[UUID] = None
    debit: Decimal = Field(Decimal("0.00"), ge=0)
    credit: Decimal = Field(Decimal("0.00"), ge=0)
    description: Optional[str] = Field(None, max_length=200)


class JournalItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code_id: UUID
    detail_id: Optional[UUID] = None
    party_id: Optional[UUID] = None
    debit: Decimal
    credit: Decimal
    description: Optional[str] = None
    position: int


# =============================================================================
# JOURNALS
# =============================================================================

class JournalCreate(BaseModel):
    """
    Blank ref_no and code are allocated from the fiscal year's sequence.
    Unbalanced items are accepted and leave the journal in draft.
    """
    fiscal_year_id: UUID
    date: datetime.date
    ref_no: Optional[str] = Field(None, max_length=50)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    type: Optional[str] = Field(None, max_length=50)
    provider: Optional[str] = Field(None, max_length=100)
    force_draft: bool = False
    items: List[JournalItemIn] = Field(..., min_length=1)

    @field_validator("ref_no", "code")
    @classmethod
    def blank_to_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class JournalUpdate(BaseModel):
    """Sending ``items`` replaces every existing line."""
    fiscal_year_id: Optional[UUID] = None
    date: Optional[datetime.date] = None
    ref_no: Optional[str] = Field(None, max_length=50)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    type: Optional[str] = Field(None, max_length=50)
    provider: Optional[str] = Field(None, max_length=100)
    force_draft: bool = False
    items: Optional[List[JournalItemIn]] = Field(None, min_length=1)


class JournalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    fiscal_year_id: UUID
    ref_no: Optional[str] = None
    code: Optional[str] = None
    serial_no: Optional[int] = None
    date: datetime.date
    description: Optional[str] = None
    type: Optional[str] = None
    provider: Optional[str] = None
    status: JournalStatus
    total_debit: Decimal
    total_credit: Decimal
    items: List[JournalItemResponse] = []
    created_at: datetime.datetime
    updated_at: datetime.datetime


class JournalListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    fiscal_year_id: UUID
    ref_no: Optional[str] = None
    code: Optional[str] = None
    serial_no: Optional[int] = None
    date: datetime.date
    description: Optional[str] = None
    type: Optional[str] = None
    provider: Optional[str] = None
    status: JournalStatus
    total: Decimal = Decimal("0.00")


# =============================================================================
# ACTIONS
# =============================================================================

class BulkPostRequest(BaseModel):
    """Filter selecting the temporary journals to post."""
    fiscal_year_id: Optional[UUID] = None
    date_from: Optional[datetime.date] = None
    date_to: Optional[datetime.date] = None
    code_from: Optional[int] = None
    code_to: Optional[int] = None
    search: Optional[str] = None
    type: Optional[List[str]] = None
    provider: Optional[str] = None


class ReorderCodesRequest(BaseModel):
    fiscal_year_id: UUID


class AutoJournalCreate(BaseModel):
    """Two-line journal: one debit and one credit for the same amount."""
    fiscal_year_id: UUID
    date: datetime.date
    amount: Decimal
    debit_code_id: UUID
    credit_code_id: UUID
    detail_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=500)
    type: Optional[str] = Field(None, max_length=50)
    provider: Optional[str] = Field(None, max_length=100)
