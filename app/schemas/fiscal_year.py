"""
Ledgerline - Fiscal Year Schemas
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FiscalYearCreate(BaseModel):
    """New years are closed unless is_closed=false is requested."""
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    is_closed: bool = True


class FiscalYearUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class OpenNextRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class FiscalYearResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    start_date: date
    end_date: date
    is_closed: bool
    created_at: datetime
    updated_at: datetime


class FiscalYearListItem(FiscalYearResponse):
    has_documents: bool = False
