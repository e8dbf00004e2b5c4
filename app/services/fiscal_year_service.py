"""
Ledgerline - Fiscal Year Service

Fiscal period management: non-overlapping years, at most one of them
open. Every mutation that changes which year is open closes all years
and opens the target inside the caller's transaction.
"""

import logging
import uuid
from datetime import date, timedelta
from typing import List, Optional, Set, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fiscal_year import FiscalYear
from app.models.invoice import Invoice
from app.models.journal import Journal
from app.schemas.fiscal_year import FiscalYearCreate, FiscalYearUpdate
from app.utils.error_handling import (
    ConflictException,
    InvalidDateRangeException,
    NotFoundException,
)
from app.utils.i18n import t

logger = logging.getLogger(__name__)


class FiscalYearService:
    """Service for fiscal period operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_fiscal_years(self) -> List[Tuple[FiscalYear, bool]]:
        """All years, newest first, each paired with whether documents reference it."""
        result = await self.db.execute(select(FiscalYear).order_by(FiscalYear.start_date.desc()))
        years = list(result.scalars().all())
        with_documents = await self._years_with_documents()
        return [(year, year.id in with_documents) for year in years]

    async def get_fiscal_year(self, fiscal_year_id: uuid.UUID) -> FiscalYear:
        year = await self.db.get(FiscalYear, fiscal_year_id)
        if not year:
            raise NotFoundException("FiscalYear", fiscal_year_id)
        return year

    async def get_current(self) -> FiscalYear:
        """The open fiscal year."""
        result = await self.db.execute(
            select(FiscalYear).where(FiscalYear.is_closed == False).limit(1)  # noqa: E712
        )
        year = result.scalar_one_or_none()
        if not year:
            raise NotFoundException("FiscalYear", message="noOpenFiscalYear")
        return year

    async def has_documents(self, fiscal_year_id: uuid.UUID) -> bool:
        for model in (Journal, Invoice):
            result = await self.db.execute(
                select(model.id).where(model.fiscal_year_id == fiscal_year_id).limit(1)
            )
            if result.first() is not None:
                return True
        return False

    async def _years_with_documents(self) -> Set[uuid.UUID]:
        ids: Set[uuid.UUID] = set()
        for model in (Journal, Invoice):
            result = await self.db.execute(
                select(model.fiscal_year_id).where(model.fiscal_year_id.is_not(None)).distinct()
            )
            ids.update(result.scalars().all())
        return ids

    async def _ensure_no_overlap(
        self,
        start_date: date,
        end_date: date,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(FiscalYear.id).where(
            FiscalYear.start_date <= end_date,
            FiscalYear.end_date >= start_date,
        )
        if exclude_id:
            query = query.where(FiscalYear.id != exclude_id)
        if (await self.db.execute(query.limit(1))).first():
            raise ConflictException(
                "overlappingRange",
                resource_type="FiscalYear",
                details={"start_date": str(start_date), "end_date": str(end_date)},
            )

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def _open_exclusively(self, year: FiscalYear) -> None:
        # Lock every year, target included, in id order; concurrent opens
        # serialize here and the later one closes the earlier target.
        await self.db.execute(
            select(FiscalYear.id).order_by(FiscalYear.id).with_for_update()
        )
        await self.db.execute(
            update(FiscalYear)
            .where(FiscalYear.id != year.id)
            .values(is_closed=True)
            .execution_options(synchronize_session="fetch")
        )
        year.is_closed = False
        await self.db.flush()
        logger.info(f"Fiscal year {year.name} ({year.id}) opened")

    async def create_fiscal_year(self, data: FiscalYearCreate) -> FiscalYear:
        if data.start_date > data.end_date:
            raise InvalidDateRangeException(data.start_date, data.end_date)
        await self._ensure_no_overlap(data.start_date, data.end_date)

        year = FiscalYear(
            name=data.name.strip(),
            start_date=data.start_date,
            end_date=data.end_date,
            is_closed=True,
        )
        self.db.add(year)
        await self.db.flush()

        if not data.is_closed:
            await self._open_exclusively(year)
        logger.info(f"Fiscal year {year.name} created ({year.start_date} - {year.end_date})")
        return year

    async def update_fiscal_year(self, fiscal_year_id: uuid.UUID, data: FiscalYearUpdate) -> FiscalYear:
        year = await self.get_fiscal_year(fiscal_year_id)
        start_date = data.start_date or year.start_date
        end_date = data.end_date or year.end_date

        if (start_date, end_date) != (year.start_date, year.end_date):
            if await self.has_documents(year.id):
                raise ConflictException("cannotEditDatesWithDocuments", resource_type="FiscalYear")
            if start_date > end_date:
                raise InvalidDateRangeException(start_date, end_date)
            await self._ensure_no_overlap(start_date, end_date, exclude_id=year.id)
            year.start_date = start_date
            year.end_date = end_date

        if data.name is not None:
            year.name = data.name.strip()

        await self.db.flush()
        return year

    async def close_fiscal_year(self, fiscal_year_id: uuid.UUID) -> FiscalYear:
        year = await self.get_fiscal_year(fiscal_year_id)
        if not year.is_closed:
            year.is_closed = True
            await self.db.flush()
            logger.info(f"Fiscal year {year.name} ({year.id}) closed")
        return year

    async def open_fiscal_year(self, fiscal_year_id: uuid.UUID) -> Tuple[FiscalYear, bool]:
        """
        Open ``fiscal_year_id`` and close every other year.

        Returns (year, changed); changed is False when the year was
        already open and nothing was written.
        """
        year = await self.get_fiscal_year(fiscal_year_id)
        if not year.is_closed:
            return year, False
        await self._open_exclusively(year)
        return year, True

    async def open_next(
        self,
        fiscal_year_id: uuid.UUID,
        name: Optional[str] = None,
        lang: str = "en",
    ) -> FiscalYear:
        """Create the year following a closed one and make it the open year."""
        source = await self.get_fiscal_year(fiscal_year_id)
        if not source.is_closed:
            raise ConflictException("mustBeClosed", resource_type="FiscalYear")

        start_date = source.end_date + timedelta(days=1)
        end_date = start_date + relativedelta(years=1) - timedelta(days=1)

        result = await self.db.execute(
            select(FiscalYear.id).where(FiscalYear.start_date == start_date).limit(1)
        )
        if result.first() is not None:
            raise ConflictException(
                "nextAlreadyExists",
                resource_type="FiscalYear",
                details={"start_date": start_date.isoformat()},
            )
        await self._ensure_no_overlap(start_date, end_date)

        year = FiscalYear(
            name=(name or f"{source.name} {t('nextSuffix', lang)}").strip(),
            start_date=start_date,
            end_date=end_date,
            is_closed=True,
        )
        self.db.add(year)
        await self.db.flush()
        await self._open_exclusively(year)
        return year

    async def delete_fiscal_year(self, fiscal_year_id: uuid.UUID) -> Optional[uuid.UUID]:
        """
        Delete a year without documents.

        If it was the open year, its nearest neighbour by start date
        (earlier preferred) is opened; the id of that year is returned.
        """
        year = await self.get_fiscal_year(fiscal_year_id)
        if await self.has_documents(year.id):
            raise ConflictException("hasDocuments", resource_type="FiscalYear")

        was_open = not year.is_closed
        start_date = year.start_date
        await self.db.delete(year)
        await self.db.flush()
        logger.info(f"Fiscal year {year.name} ({fiscal_year_id}) deleted")

        if not was_open:
            return None

        neighbour = await self._neighbour(start_date, earlier=True) or await self._neighbour(start_date, earlier=False)
        if neighbour is None:
            return None
        await self._open_exclusively(neighbour)
        return neighbour.id

    async def _neighbour(self, start_date: date, earlier: bool) -> Optional[FiscalYear]:
        if earlier:
            query = select(FiscalYear).where(FiscalYear.start_date < start_date).order_by(FiscalYear.start_date.desc())
        else:
            query = select(FiscalYear).where(FiscalYear.start_date > start_date).order_by(FiscalYear.start_date.asc())
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()
