"""
Ledgerline - Setting Schemas
"""

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.setting import SettingType


class SettingCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    type: SettingType = SettingType.STRING
    value: Optional[Any] = None
    special_id: Optional[UUID] = None


class SettingUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[SettingType] = None
    value: Optional[Any] = None
    special_id: Optional[UUID] = None


class SettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    type: SettingType
    value: Optional[Any] = None
    special_id: Optional[UUID] = None
