"""
Ledgerline - Common Schemas

Response envelopes shared by every router. Successful responses are
``{ok: true, message, item|items|data}``; errors are rendered by the
exception handlers in app.utils.error_handling.
"""

from typing import Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel


T = TypeVar("T")


class MessageResponse(BaseModel):
    """Generic message response."""
    ok: bool = True
    message: str


class ItemResponse(MessageResponse, Generic[T]):
    """Single resource."""
    item: T


class ListResponse(MessageResponse, Generic[T]):
    """Unpaginated collection."""
    items: List[T]


class PageResponse(MessageResponse, Generic[T]):
    """Paginated collection."""
    items: List[T]
    total: int
    page: int
    page_size: int
    pages: int


class DataResponse(MessageResponse, Generic[T]):
    """Free-form payload."""
    data: T


class DeleteResult(BaseModel):
    id: UUID
    opened_id: Optional[UUID] = None


class AffectedResult(BaseModel):
    affected: int
    ids: List[UUID] = []
