"""
Ledgerline - Journals Router

Journal documents and their lifecycle actions: post, reverse,
bulk-post, reorder-codes and two-line auto journals.
"""

import datetime
import math
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.models.journal import JournalStatus
from app.schemas.common import AffectedResult, DataResponse, ItemResponse, PageResponse
from app.schemas.journal import (
    AutoJournalCreate,
    BulkPostRequest,
    JournalCreate,
    JournalListItem,
    JournalResponse,
    JournalUpdate,
    ReorderCodesRequest,
)
from app.services.journal_service import MAX_PAGE_SIZE, JournalFilter, JournalService
from app.utils.i18n import t


router = APIRouter()


@router.get(
    "",
    response_model=PageResponse[JournalListItem],
    summary="List journals",
    description="Filtered, sorted and paginated. ``total`` is the sum of debits.",
)
async def list_journals(
    fiscal_year_id: Optional[UUID] = Query(None),
    date_from: Optional[datetime.date] = Query(None),
    date_to: Optional[datetime.date] = Query(None),
    status_filter: Optional[List[JournalStatus]] = Query(None, alias="status"),
    type_filter: Optional[List[str]] = Query(None, alias="type"),
    provider: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches ref_no, code or description"),
    code_from: Optional[int] = Query(None),
    code_to: Optional[int] = Query(None),
    sort_by: str = Query("date", pattern="^(date|code|ref_no|serial_no)$"),
    sort_dir: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    filters = JournalFilter(
        fiscal_year_id=fiscal_year_id,
        date_from=date_from,
        date_to=date_to,
        statuses=status_filter or [],
        types=type_filter or [],
        provider=provider,
        search=search,
        code_from=code_from,
        code_to=code_to,
    )
    rows, total = await JournalService(db).list_journals(
        filters, sort_by=sort_by, sort_dir=sort_dir, page=page, page_size=page_size,
    )
    return PageResponse[JournalListItem](
        message=t("ok", lang),
        items=[JournalListItem(**row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )


@router.get(
    "/{journal_id}",
    response_model=ItemResponse[JournalResponse],
    summary="Get journal",
)
async def get_journal(
    journal_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    journal = await JournalService(db).get_journal(journal_id)
    return ItemResponse[JournalResponse](message=t("ok", lang), item=JournalResponse.model_validate(journal))


@router.post(
    "",
    response_model=ItemResponse[JournalResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create journal",
    description="Unbalanced journals are stored as drafts.",
)
async def create_journal(
    request: JournalCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    journal = await JournalService(db).create_journal(request)
    await db.commit()
    await db.refresh(journal)
    return ItemResponse[JournalResponse](message=t("created", lang), item=JournalResponse.model_validate(journal))


@router.patch(
    "/{journal_id}",
    response_model=ItemResponse[JournalResponse],
    summary="Update journal",
)
async def update_journal(
    journal_id: UUID,
    request: JournalUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    journal = await JournalService(db).update_journal(journal_id, request)
    await db.commit()
    await db.refresh(journal)
    return ItemResponse[JournalResponse](message=t("updated", lang), item=JournalResponse.model_validate(journal))


@router.post(
    "/{journal_id}/post",
    response_model=ItemResponse[JournalResponse],
    summary="Post journal",
    description="Make a balanced journal permanent.",
)
async def post_journal(
    journal_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    journal = await JournalService(db).post_journal(journal_id)
    await db.commit()
    await db.refresh(journal)
    return ItemResponse[JournalResponse](message=t("posted", lang), item=JournalResponse.model_validate(journal))


@router.post(
    "/{journal_id}/reverse",
    response_model=ItemResponse[JournalResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Reverse journal",
    description="Create a permanent journal with debits and credits swapped.",
)
async def reverse_journal(
    journal_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    reversal = await JournalService(db).reverse_journal(journal_id)
    await db.commit()
    await db.refresh(reversal)
    return ItemResponse[JournalResponse](message=t("reversed", lang), item=JournalResponse.model_validate(reversal))


@router.delete(
    "/{journal_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete journal",
)
async def delete_journal(
    journal_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await JournalService(db).delete_journal(journal_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": journal_id})


@router.post(
    "/bulk-post",
    response_model=DataResponse[AffectedResult],
    summary="Bulk post journals",
    description="Post every matching temporary journal whose lines balance.",
)
async def bulk_post(
    request: BulkPostRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    filters = JournalFilter(
        fiscal_year_id=request.fiscal_year_id,
        date_from=request.date_from,
        date_to=request.date_to,
        types=request.type or [],
        provider=request.provider,
        search=request.search,
        code_from=request.code_from,
        code_to=request.code_to,
    )
    ids = await JournalService(db).bulk_post(filters)
    await db.commit()
    return DataResponse[AffectedResult](
        message=t("bulkPosted", lang, affected=len(ids)),
        data=AffectedResult(affected=len(ids), ids=ids),
    )


@router.post(
    "/reorder-codes",
    response_model=DataResponse[AffectedResult],
    summary="Reorder journal codes",
    description="Renumber codes 1..n in date order within a fiscal year.",
)
async def reorder_codes(
    request: ReorderCodesRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    affected = await JournalService(db).reorder_codes(request.fiscal_year_id)
    await db.commit()
    return DataResponse[AffectedResult](
        message=t("codesReordered", lang, affected=affected),
        data=AffectedResult(affected=affected),
    )


@router.post(
    "/auto",
    response_model=ItemResponse[JournalResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create auto journal",
    description="Two-line temporary journal moving an amount between two codes.",
)
async def create_auto_journal(
    request: AutoJournalCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    journal = await JournalService(db).create_auto_journal(request)
    await db.commit()
    await db.refresh(journal)
    return ItemResponse[JournalResponse](message=t("created", lang), item=JournalResponse.model_validate(journal))
