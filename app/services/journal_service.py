"""
Ledgerline - Journal Service

The journal state machine: draft -> temporary -> permanent.

- create/update never reject an unbalanced journal; they park it in draft
- post re-sums the stored lines and refuses anything unbalanced
- a permanent journal is only ever offset by a reversal journal
- bulk-post and reorder-codes run as single set-based statements
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import (
    String, and_, case, cast, delete, func, or_, select, update,
)
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import is_numeric_text, numeric_value
from app.models.fiscal_year import FiscalYear
from app.models.journal import BALANCE_EPSILON, Journal, JournalItem, JournalStatus
from app.models.taxonomy import Code, Detail
from app.models.treasury import Payment, Receipt, TreasuryDocumentStatus
from app.schemas.journal import AutoJournalCreate, JournalCreate, JournalItemIn, JournalUpdate
from app.services.sequence_service import JOURNAL_CODE, SequenceService, scoped
from app.utils.error_handling import (
    ConflictException,
    ErrorCode,
    InvalidAmountException,
    NotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
SORTABLE_FIELDS = ("date", "code", "ref_no", "serial_no")


@dataclass
class JournalLine:
    """A line to write, before it is attached to a journal."""
    code_id: uuid.UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    detail_id: Optional[uuid.UUID] = None
    party_id: Optional[uuid.UUID] = None
    description: Optional[str] = None


@dataclass
class JournalFilter:
    """Criteria shared by the journal list and bulk-post."""
    fiscal_year_id: Optional[uuid.UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    statuses: List[JournalStatus] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    provider: Optional[str] = None
    search: Optional[str] = None
    code_from: Optional[int] = None
    code_to: Optional[int] = None

    def predicates(self) -> list:
        conditions = []
        if self.fiscal_year_id:
            conditions.append(Journal.fiscal_year_id == self.fiscal_year_id)
        if self.date_from:
            conditions.append(Journal.date >= self.date_from)
        if self.date_to:
            conditions.append(Journal.date <= self.date_to)
        if self.statuses:
            conditions.append(Journal.status.in_(self.statuses))
        if self.types:
            conditions.append(Journal.type.in_(self.types))
        if self.provider:
            conditions.append(Journal.provider.ilike(f"%{self.provider.strip()}%"))
        if self.search:
            pattern = f"%{self.search.strip()}%"
            conditions.append(or_(
                Journal.ref_no.ilike(pattern),
                Journal.code.ilike(pattern),
                Journal.description.ilike(pattern),
            ))
        if self.code_from is not None or self.code_to is not None:
            low, high = self.code_from, self.code_to
            if low is not None and high is not None and low > high:
                low, high = high, low
            numeric_code = _numeric_or_null(Journal.code)
            code_conditions = [is_numeric_text(Journal.code)]
            if low is not None:
                code_conditions.append(numeric_code >= low)
            if high is not None:
                code_conditions.append(numeric_code <= high)
            conditions.append(and_(*code_conditions))
        return conditions


def _numeric_or_null(column):
    return case((is_numeric_text(column), numeric_value(column)), else_=None)


def _status_for(lines: Sequence[Any], force_draft: bool) -> JournalStatus:
    total_debit = sum((Decimal(line.debit or 0) for line in lines), Decimal("0"))
    total_credit = sum((Decimal(line.credit or 0) for line in lines), Decimal("0"))
    if force_draft or abs(total_debit - total_credit) > BALANCE_EPSILON:
        return JournalStatus.DRAFT
    return JournalStatus.TEMPORARY


class JournalService:
    """Service for journal lifecycle operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = SequenceService(db)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_journals(
        self,
        filters: JournalFilter,
        sort_by: str = "date",
        sort_dir: str = "desc",
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Page of journals with ``total`` (sum of debits) per row, plus the match count."""
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
        conditions = filters.predicates()

        count_result = await self.db.execute(
            select(func.count(Journal.id)).where(*conditions)
        )
        total_count = count_result.scalar() or 0

        totals = (
            select(
                JournalItem.journal_id.label("journal_id"),
                func.coalesce(func.sum(JournalItem.debit), 0).label("total"),
            )
            .group_by(JournalItem.journal_id)
            .subquery()
        )

        if sort_by not in SORTABLE_FIELDS:
            sort_by = "date"
        column = getattr(Journal, sort_by)
        keys = [_numeric_or_null(column), column] if sort_by in ("code", "ref_no") else [column]
        descending = sort_dir.lower() == "desc"
        order_by = [(key.desc() if descending else key.asc()).nulls_last() for key in keys]
        order_by.append(Journal.id)

        result = await self.db.execute(
            select(Journal, func.coalesce(totals.c.total, 0))
            .outerjoin(totals, totals.c.journal_id == Journal.id)
            .where(*conditions)
            .order_by(*order_by)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        rows = []
        for journal, total in result.all():
            rows.append({
                "id": journal.id,
                "fiscal_year_id": journal.fiscal_year_id,
                "ref_no": journal.ref_no,
                "code": journal.code,
                "serial_no": journal.serial_no,
                "date": journal.date,
                "description": journal.description,
                "type": journal.type,
                "provider": journal.provider,
                "status": journal.status,
                "total": Decimal(str(total)),
            })
        return rows, total_count

    async def get_journal(self, journal_id: uuid.UUID, for_update: bool = False) -> Journal:
        """
        Load a journal. ``for_update`` takes the row lock that state
        transitions hold while they check status and totals.
        """
        query = select(Journal).where(Journal.id == journal_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        journal = result.scalar_one_or_none()
        if not journal:
            raise NotFoundException("Journal", journal_id)
        return journal

    # =========================================================================
    # CREATE / UPDATE / DELETE
    # =========================================================================

    async def _ensure_fiscal_year(self, fiscal_year_id: uuid.UUID) -> None:
        if not await self.db.get(FiscalYear, fiscal_year_id):
            raise NotFoundException("FiscalYear", fiscal_year_id)

    async def _ensure_item_references(self, lines: Sequence[Any]) -> None:
        code_ids = {line.code_id for line in lines}
        detail_ids = {line.detail_id for line in lines if line.detail_id}
        if code_ids:
            result = await self.db.execute(select(Code.id).where(Code.id.in_(code_ids)))
            missing = code_ids - set(result.scalars().all())
            if missing:
                raise ValidationException(
                    "invalidItemReference",
                    field="items",
                    details={"code_ids": sorted(str(x) for x in missing)},
                )
        if detail_ids:
            result = await self.db.execute(select(Detail.id).where(Detail.id.in_(detail_ids)))
            missing = detail_ids - set(result.scalars().all())
            if missing:
                raise ValidationException(
                    "invalidItemReference",
                    field="items",
                    details={"detail_ids": sorted(str(x) for x in missing)},
                )

    @staticmethod
    def _build_items(lines: Sequence[Any]) -> List[JournalItem]:
        return [
            JournalItem(
                code_id=line.code_id,
                detail_id=line.detail_id,
                party_id=line.party_id,
                debit=Decimal(line.debit or 0),
                credit=Decimal(line.credit or 0),
                description=line.description,
                position=position,
            )
            for position, line in enumerate(lines)
        ]

    async def create_journal_record(
        self,
        fiscal_year_id: uuid.UUID,
        journal_date: date,
        lines: Sequence[Any],
        status: JournalStatus,
        description: Optional[str] = None,
        ref_no: Optional[str] = None,
        code: Optional[str] = None,
        journal_type: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> Journal:
        """Insert a journal with numbers allocated for any blank ref_no/code."""
        journal = Journal(
            fiscal_year_id=fiscal_year_id,
            ref_no=ref_no or await self.sequences.next_journal_ref_no(fiscal_year_id),
            code=code or await self.sequences.next_journal_code(fiscal_year_id),
            serial_no=await self.sequences.next_serial_no(),
            date=journal_date,
            description=description,
            type=journal_type,
            provider=provider,
            status=status,
            items=self._build_items(lines),
        )
        self.db.add(journal)
        await self.db.flush()
        return journal

    async def create_journal(self, data: JournalCreate) -> Journal:
        await self._ensure_fiscal_year(data.fiscal_year_id)
        await self._ensure_item_references(data.items)

        journal = await self.create_journal_record(
            fiscal_year_id=data.fiscal_year_id,
            journal_date=data.date,
            lines=data.items,
            status=_status_for(data.items, data.force_draft),
            description=data.description,
            ref_no=data.ref_no,
            code=data.code,
            journal_type=data.type,
            provider=data.provider,
        )
        logger.info(f"Journal {journal.ref_no} created as {journal.status.value}")
        return journal

    async def update_journal(self, journal_id: uuid.UUID, data: JournalUpdate) -> Journal:
        journal = await self.get_journal(journal_id, for_update=True)
        if journal.status == JournalStatus.PERMANENT:
            raise ConflictException("cannotModifyPosted", code=ErrorCode.CANNOT_MODIFY, resource_type="Journal")

        changes = data.model_dump(exclude_unset=True, exclude={"items", "force_draft"})
        if changes.get("fiscal_year_id") and changes["fiscal_year_id"] != journal.fiscal_year_id:
            await self._ensure_fiscal_year(changes["fiscal_year_id"])
            journal.fiscal_year_id = changes["fiscal_year_id"]
        if changes.get("date"):
            journal.date = changes["date"]
        for name in ("description", "type", "provider"):
            if name in changes:
                setattr(journal, name, changes[name])
        if "ref_no" in changes:
            ref_no = (changes["ref_no"] or "").strip()
            journal.ref_no = ref_no or await self.sequences.next_journal_ref_no(journal.fiscal_year_id)
        if "code" in changes:
            code = (changes["code"] or "").strip()
            journal.code = code or await self.sequences.next_journal_code(journal.fiscal_year_id)

        if data.items is not None:
            await self._ensure_item_references(data.items)
            journal.items = self._build_items(data.items)

        journal.status = _status_for(journal.items, data.force_draft)
        await self.db.flush()
        logger.info(f"Journal {journal.ref_no} updated ({journal.status.value})")
        return journal

    async def delete_journal(self, journal_id: uuid.UUID) -> None:
        """Delete a non-permanent journal, detaching treasury documents that point at it."""
        journal = await self.get_journal(journal_id, for_update=True)
        if journal.status == JournalStatus.PERMANENT:
            raise ConflictException("cannotDeletePosted", code=ErrorCode.CANNOT_DELETE, resource_type="Journal")

        for model in (Receipt, Payment):
            await self.db.execute(
                update(model)
                .where(model.journal_id == journal.id)
                .values(status=TreasuryDocumentStatus.TEMPORARY, journal_id=None)
                .execution_options(synchronize_session="fetch")
            )
        await self.db.delete(journal)
        await self.db.flush()
        logger.info(f"Journal {journal.ref_no} ({journal_id}) deleted")

    async def create_auto_journal(self, data: AutoJournalCreate) -> Journal:
        """Two-line temporary journal moving ``amount`` from one code to another."""
        if data.amount < Decimal("0.01"):
            raise InvalidAmountException(amount=data.amount)
        await self._ensure_fiscal_year(data.fiscal_year_id)
        lines = [
            JournalLine(code_id=data.debit_code_id, debit=data.amount, detail_id=data.detail_id,
                        description=data.description),
            JournalLine(code_id=data.credit_code_id, credit=data.amount, detail_id=data.detail_id,
                        description=data.description),
        ]
        await self._ensure_item_references(lines)
        journal = await self.create_journal_record(
            fiscal_year_id=data.fiscal_year_id,
            journal_date=data.date,
            lines=lines,
            status=JournalStatus.TEMPORARY,
            description=data.description,
            journal_type=data.type,
            provider=data.provider,
        )
        logger.info(f"Auto journal {journal.ref_no} created for {data.amount}")
        return journal

    # =========================================================================
    # STATE TRANSITIONS
    # =========================================================================

    async def post_journal(self, journal_id: uuid.UUID) -> Journal:
        journal = await self.get_journal(journal_id, for_update=True)
        if journal.status == JournalStatus.PERMANENT:
            raise ConflictException("cannotModifyPosted", code=ErrorCode.CANNOT_MODIFY, resource_type="Journal")

        result = await self.db.execute(
            select(
                func.count(JournalItem.id),
                func.coalesce(func.sum(JournalItem.debit), 0),
                func.coalesce(func.sum(JournalItem.credit), 0),
            ).where(JournalItem.journal_id == journal.id)
        )
        item_count, total_debit, total_credit = result.one()
        if not item_count:
            raise ValidationException("missingItems")
        difference = Decimal(str(total_debit)) - Decimal(str(total_credit))
        if abs(difference) > BALANCE_EPSILON:
            raise ValidationException(
                "unbalanced",
                details={"total_debit": str(total_debit), "total_credit": str(total_credit)},
            )

        journal.status = JournalStatus.PERMANENT
        await self.db.flush()
        await self._promote_documents([journal.id])
        logger.info(f"Journal {journal.ref_no} ({journal.id}) posted")
        return journal

    async def reverse_journal(self, journal_id: uuid.UUID) -> Journal:
        """Create a permanent journal with every debit and credit swapped."""
        journal = await self.get_journal(journal_id, for_update=True)
        if journal.status != JournalStatus.PERMANENT:
            raise ConflictException("cannotReverseDraft", code=ErrorCode.CANNOT_MODIFY, resource_type="Journal")

        lines = [
            JournalLine(
                code_id=item.code_id,
                detail_id=item.detail_id,
                party_id=item.party_id,
                debit=item.credit,
                credit=item.debit,
                description=f"Reversal: {item.description}" if item.description else "Reversal",
            )
            for item in journal.items
        ]
        description = (
            f"Reversal of {journal.id}: {journal.description}"
            if journal.description else f"Reversal of {journal.id}"
        )
        reversal = await self.create_journal_record(
            fiscal_year_id=journal.fiscal_year_id,
            journal_date=journal.date,
            lines=lines,
            status=JournalStatus.PERMANENT,
            description=description[:500],
            ref_no=f"REV-{journal.ref_no}" if journal.ref_no else f"REV-{str(journal.id)[:8]}",
            journal_type=journal.type,
            provider=journal.provider,
        )
        logger.info(f"Journal {journal.ref_no} reversed by {reversal.ref_no} ({reversal.id})")
        return reversal

    async def bulk_post(self, filters: JournalFilter) -> List[uuid.UUID]:
        """Post every matching temporary journal whose lines balance; returns their ids."""
        balanced = (
            select(JournalItem.journal_id)
            .group_by(JournalItem.journal_id)
            .having(
                func.abs(func.sum(JournalItem.debit) - func.sum(JournalItem.credit)) <= BALANCE_EPSILON
            )
        )
        result = await self.db.execute(
            update(Journal)
            .where(
                Journal.status == JournalStatus.TEMPORARY,
                Journal.id.in_(balanced),
                *filters.predicates(),
            )
            .values(status=JournalStatus.PERMANENT)
            .returning(Journal.id)
            .execution_options(synchronize_session=False)
        )
        posted_ids = list(result.scalars().all())
        if posted_ids:
            await self._promote_documents(posted_ids)
        logger.info(f"Bulk post made {len(posted_ids)} journals permanent")
        return posted_ids

    async def reorder_codes(self, fiscal_year_id: uuid.UUID) -> int:
        """
        Rewrite ``code`` of every journal in the year to its rank by
        (date, numeric ref_no, numeric code, id), nulls last.
        """
        await self._ensure_fiscal_year(fiscal_year_id)
        # Hold the code sequence while codes are rewritten.
        await self.sequences.lock(scoped(JOURNAL_CODE, fiscal_year_id))

        ranked = (
            select(
                Journal.id.label("journal_id"),
                func.row_number().over(
                    order_by=(
                        Journal.date.asc(),
                        _numeric_or_null(Journal.ref_no).asc().nulls_last(),
                        _numeric_or_null(Journal.code).asc().nulls_last(),
                        Journal.id.asc(),
                    )
                ).label("rn"),
            )
            .where(Journal.fiscal_year_id == fiscal_year_id)
            .subquery()
        )
        result = await self.db.execute(
            update(Journal)
            .where(Journal.id == ranked.c.journal_id)
            .values(code=cast(ranked.c.rn, String))
            .execution_options(synchronize_session=False)
        )
        affected = result.rowcount or 0
        logger.info(f"Reordered {affected} journal codes in fiscal year {fiscal_year_id}")
        return affected

    async def _promote_documents(self, journal_ids: List[uuid.UUID]) -> None:
        """Treasury documents sent into now-permanent journals become permanent."""
        for model in (Receipt, Payment):
            await self.db.execute(
                update(model)
                .where(
                    model.journal_id.in_(journal_ids),
                    model.status == TreasuryDocumentStatus.SENT,
                )
                .values(status=TreasuryDocumentStatus.PERMANENT)
                .execution_options(synchronize_session="fetch")
            )
