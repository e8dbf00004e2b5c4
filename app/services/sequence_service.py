"""
Ledgerline - Sequence Service

Allocates document numbers (journal ref_no and code, serial_no, receipt
and payment numbers) per scope.

Each scope owns one ``sequence_counters`` row. Allocation locks that row
(SELECT ... FOR UPDATE), computes max-plus-one over the numeric values
already stored in the scope, and records the result as ``last_value``.
The lock is held until the caller's transaction ends, so two requests
numbering the same scope are serialized.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import is_numeric_text, numeric_value
from app.models.journal import Journal, SequenceCounter
from app.models.taxonomy import Detail
from app.models.treasury import Payment, Receipt

logger = logging.getLogger(__name__)


# Scope keys
JOURNAL_REF_NO = "journal.ref_no"
JOURNAL_CODE = "journal.code"
JOURNAL_SERIAL = "journal.serial"
RECEIPT_NUMBER = "receipt.number"
PAYMENT_NUMBER = "payment.number"
DETAIL_CODE = "detail.code"


def scoped(name: str, fiscal_year_id: Optional[uuid.UUID] = None) -> str:
    """``journal.ref_no:<fy>``; documents without a fiscal year share ``:global``."""
    return f"{name}:{fiscal_year_id if fiscal_year_id else 'global'}"


class SequenceService:
    """Row-locked, per-scope number allocation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock(self, scope: str) -> SequenceCounter:
        """Return the counter row for ``scope`` locked for this transaction."""
        counter = await self._select_for_update(scope)
        if counter is not None:
            return counter

        # First use of the scope. A concurrent creator surfaces as an
        # IntegrityError on the savepoint.
        try:
            async with self.db.begin_nested():
                counter = SequenceCounter(scope=scope, last_value=0)
                self.db.add(counter)
        except IntegrityError:
            logger.debug(f"Sequence scope {scope} created concurrently")
        counter = await self._select_for_update(scope)
        return counter

    async def _select_for_update(self, scope: str) -> Optional[SequenceCounter]:
        result = await self.db.execute(
            select(SequenceCounter)
            .where(SequenceCounter.scope == scope)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def _bump(self, counter: SequenceCounter, current_max: Optional[int]) -> int:
        value = (current_max or 0) + 1
        counter.last_value = value
        await self.db.flush()
        return value

    # =========================================================================
    # JOURNALS
    # =========================================================================

    async def next_journal_ref_no(self, fiscal_year_id: uuid.UUID) -> str:
        scope = scoped(JOURNAL_REF_NO, fiscal_year_id)
        counter = await self.lock(scope)
        current = await self._max_numeric(Journal.ref_no, Journal.fiscal_year_id == fiscal_year_id)
        return str(await self._bump(counter, current))

    async def next_journal_code(self, fiscal_year_id: uuid.UUID) -> str:
        scope = scoped(JOURNAL_CODE, fiscal_year_id)
        counter = await self.lock(scope)
        current = await self._max_numeric(Journal.code, Journal.fiscal_year_id == fiscal_year_id)
        return str(await self._bump(counter, current))

    async def next_serial_no(self) -> int:
        counter = await self.lock(JOURNAL_SERIAL)
        result = await self.db.execute(select(func.max(Journal.serial_no)))
        return await self._bump(counter, result.scalar())

    # =========================================================================
    # TREASURY DOCUMENTS
    # =========================================================================

    async def next_receipt_number(self, fiscal_year_id: Optional[uuid.UUID]) -> str:
        scope = scoped(RECEIPT_NUMBER, fiscal_year_id)
        counter = await self.lock(scope)
        condition = (
            Receipt.fiscal_year_id == fiscal_year_id
            if fiscal_year_id else Receipt.fiscal_year_id.is_(None)
        )
        current = await self._max_numeric(Receipt.number, condition)
        return str(await self._bump(counter, current))

    async def next_payment_number(self, fiscal_year_id: Optional[uuid.UUID]) -> str:
        scope = scoped(PAYMENT_NUMBER, fiscal_year_id)
        counter = await self.lock(scope)
        condition = (
            Payment.fiscal_year_id == fiscal_year_id
            if fiscal_year_id else Payment.fiscal_year_id.is_(None)
        )
        current = await self._max_numeric(Payment.number, condition)
        return str(await self._bump(counter, current))

    # =========================================================================
    # DETAIL CODES
    # =========================================================================

    async def lock_detail_codes(self) -> None:
        """Serialize readers/writers of the 4-digit detail code space."""
        await self.lock(DETAIL_CODE)

    async def used_detail_codes(self) -> set:
        result = await self.db.execute(select(Detail.code))
        return {code for code in result.scalars().all()}

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _max_numeric(self, column, condition) -> Optional[int]:
        result = await self.db.execute(
            select(func.max(numeric_value(column))).where(
                condition,
                is_numeric_text(column),
            )
        )
        return result.scalar()
