"""
Ledgerline - Account Taxonomy Models

Chart of accounts (group -> general -> specific codes), the flat 4-digit
detail code space, and the detail-level classification tree.
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean, ForeignKey, Integer, String, Enum as SQLEnum, Index, Column, Table,
    DateTime, func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.journal import JournalItem


# =============================================================================
# ENUMS
# =============================================================================

class CodeKind(str, Enum):
    """Level of a chart-of-accounts node."""
    GROUP = "group"
    GENERAL = "general"
    SPECIFIC = "specific"


class CodeNature(str, Enum):
    """Normal balance side of an account."""
    DEBIT = "debit"
    CREDIT = "credit"


class DetailKind(str, Enum):
    """Who owns a detail row."""
    USER_MANAGED = "user_managed"
    SYSTEM_MANAGED = "system_managed"


# Parent kind each code kind requires (None = must be a root).
REQUIRED_PARENT_KIND = {
    CodeKind.GROUP: None,
    CodeKind.GENERAL: CodeKind.GROUP,
    CodeKind.SPECIFIC: CodeKind.GENERAL,
}


# =============================================================================
# CODES
# =============================================================================

class Code(BaseModel):
    """Chart-of-accounts node."""

    __tablename__ = "codes"

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[CodeKind] = mapped_column(SQLEnum(CodeKind), nullable=False)
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("codes.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    nature: Mapped[Optional[CodeNature]] = mapped_column(SQLEnum(CodeNature), nullable=True)
    can_have_details: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    parent: Mapped[Optional["Code"]] = relationship(
        "Code",
        remote_side="Code.id",
        back_populates="children",
    )
    children: Mapped[List["Code"]] = relationship(
        "Code",
        back_populates="parent",
    )
    journal_items: Mapped[List["JournalItem"]] = relationship(
        "JournalItem",
        back_populates="code",
    )

    __table_args__ = (
        Index("ix_codes_kind", "kind"),
    )

    def __repr__(self) -> str:
        return f"<Code({self.code}: {self.title})>"


# =============================================================================
# DETAILS & DETAIL LEVELS
# =============================================================================

detail_level_specific_codes = Table(
    "detail_level_specific_codes",
    Base.metadata,
    Column(
        "detail_level_id",
        UUID(as_uuid=True),
        ForeignKey("detail_levels.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "code_id",
        UUID(as_uuid=True),
        ForeignKey("codes.id", ondelete="RESTRICT"),
        primary_key=True,
    ),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
)


class Detail(BaseModel):
    """Flat, globally unique 4-digit sub-ledger code."""

    __tablename__ = "details"

    code: Mapped[str] = mapped_column(String(4), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    kind: Mapped[DetailKind] = mapped_column(
        SQLEnum(DetailKind),
        default=DetailKind.USER_MANAGED,
        nullable=False,
    )

    level_links: Mapped[List["DetailDetailLevel"]] = relationship(
        "DetailDetailLevel",
        back_populates="detail",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_system_managed(self) -> bool:
        return self.kind == DetailKind.SYSTEM_MANAGED

    def __repr__(self) -> str:
        return f"<Detail({self.code}: {self.title})>"


class DetailLevel(BaseModel):
    """Node of the detail classification tree."""

    __tablename__ = "detail_levels"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("detail_levels.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    specific_codes: Mapped[List["Code"]] = relationship(
        "Code",
        secondary=detail_level_specific_codes,
        lazy="selectin",
    )

    @property
    def specific_code_ids(self) -> List[uuid.UUID]:
        return [code.id for code in self.specific_codes]

    def __repr__(self) -> str:
        return f"<DetailLevel({self.code}: {self.title})>"


class DetailDetailLevel(Base):
    """Link between a detail and a leaf detail level."""

    __tablename__ = "details_detail_levels"

    detail_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("details.id", ondelete="CASCADE"),
        primary_key=True,
    )
    detail_level_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("detail_levels.id", ondelete="CASCADE"),
        primary_key=True,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    detail: Mapped["Detail"] = relationship("Detail", back_populates="level_links")

    __table_args__ = (
        Index("ix_details_detail_levels_level", "detail_level_id"),
    )
