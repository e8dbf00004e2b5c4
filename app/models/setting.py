"""
Ledgerline - Setting Model

Operator-maintained key/value rows. `special` settings point at a code
through special_id (used by the treasury code mapping fallback);
`digits` settings hold a number such as a handler detail start code.
"""

import uuid
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, String, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class SettingType(str, Enum):
    SPECIAL = "special"
    DIGITS = "digits"
    STRING = "string"


class Setting(BaseModel):
    """Application setting row."""

    __tablename__ = "settings"

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[SettingType] = mapped_column(
        SQLEnum(SettingType),
        default=SettingType.STRING,
        nullable=False,
    )
    value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    special_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Setting({self.code})>"
