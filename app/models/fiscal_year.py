"""
Ledgerline - Fiscal Year Model

Non-overlapping accounting periods. At most one row is open
(is_closed = False) at any time; the fiscal year service keeps that
invariant inside a single transaction per mutation.
"""

from datetime import date
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, Date, String, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.journal import Journal


class FiscalYear(BaseModel):
    """Fiscal year definition."""

    __tablename__ = "fiscal_years"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    journals: Mapped[List["Journal"]] = relationship(
        "Journal",
        back_populates="fiscal_year",
    )

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="date_range"),
        Index("ix_fiscal_years_start_date", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<FiscalYear({self.name}: {self.start_date} - {self.end_date})>"
