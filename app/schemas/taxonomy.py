"""
Ledgerline - Account Taxonomy Schemas

Pydantic schemas for codes, details and detail levels.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.taxonomy import CodeKind, CodeNature, DetailKind


# =============================================================================
# CODES
# =============================================================================

class CodeCreate(BaseModel):
    """
    Schema for creating a code.

    ``kind`` and ``nature`` are plain strings so the service can answer
    with its own messages: a bad kind is rejected, a bad nature becomes
    null.
    """
    code: str = Field(..., max_length=20)
    title: str = Field(..., max_length=255)
    kind: str
    parent_id: Optional[UUID] = None
    is_active: bool = True
    nature: Optional[str] = None
    can_have_details: bool = True


class CodeUpdate(BaseModel):
    """Schema for updating a code. Only fields that are sent change."""
    code: Optional[str] = Field(None, max_length=20)
    title: Optional[str] = Field(None, max_length=255)
    kind: Optional[str] = None
    parent_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    nature: Optional[str] = None
    can_have_details: Optional[bool] = None


class CodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    title: str
    kind: CodeKind
    parent_id: Optional[UUID] = None
    is_active: bool
    nature: Optional[CodeNature] = None
    can_have_details: bool
    created_at: datetime
    updated_at: datetime


class CodeTreeNode(CodeResponse):
    """Code with nested children (group -> general -> specific)."""
    children: List["CodeTreeNode"] = []


CodeTreeNode.model_rebuild()


# =============================================================================
# DETAILS
# =============================================================================

class DetailLevelLinkIn(BaseModel):
    id: UUID
    is_primary: bool = False
    position: Optional[int] = None


class DetailCreate(BaseModel):
    """
    Links may be sent either as ``detail_levels`` objects or as a bare
    ``detail_level_ids`` list.
    """
    code: str
    title: str = Field(..., min_length=1, max_length=255)
    is_active: bool = True
    detail_levels: Optional[List[DetailLevelLinkIn]] = None
    detail_level_ids: Optional[List[UUID]] = None


class DetailUpdate(BaseModel):
    """Omitting both link fields keeps the current links."""
    code: Optional[str] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None
    detail_levels: Optional[List[DetailLevelLinkIn]] = None
    detail_level_ids: Optional[List[UUID]] = None


class DetailLinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    detail_level_id: UUID
    is_primary: bool
    position: Optional[int] = None


class DetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    title: str
    is_active: bool
    kind: DetailKind
    detail_levels: List[DetailLinkResponse] = Field(default_factory=list, validation_alias="level_links")
    created_at: datetime
    updated_at: datetime


class SuggestedCode(BaseModel):
    code: str


# =============================================================================
# DETAIL LEVELS
# =============================================================================

class DetailLevelCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[UUID] = None
    is_active: bool = True
    specific_code_ids: List[UUID] = []


class DetailLevelUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    parent_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    specific_code_ids: Optional[List[UUID]] = None


class DetailLevelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    title: str
    parent_id: Optional[UUID] = None
    is_active: bool
    specific_code_ids: List[UUID] = []
    created_at: datetime
    updated_at: datetime


class DetailLevelTreeNode(DetailLevelResponse):
    children: List["DetailLevelTreeNode"] = []


DetailLevelTreeNode.model_rebuild()


class DetailLevelLinkView(BaseModel):
    """A detail level as seen from one of its linked details."""
    detail_level_id: UUID
    code: str
    title: str
    is_primary: bool
    position: Optional[int] = None
