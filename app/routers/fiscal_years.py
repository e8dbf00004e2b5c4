"""
Ledgerline - Fiscal Years Router

Fiscal periods. At most one year is open at a time; opening a year
closes every other one in the same transaction.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.schemas.common import DataResponse, DeleteResult, ItemResponse, ListResponse
from app.schemas.fiscal_year import (
    FiscalYearCreate,
    FiscalYearListItem,
    FiscalYearResponse,
    FiscalYearUpdate,
    OpenNextRequest,
)
from app.services.fiscal_year_service import FiscalYearService
from app.utils.i18n import t


router = APIRouter()


@router.get(
    "",
    response_model=ListResponse[FiscalYearListItem],
    summary="List fiscal years",
    description="Newest first, each flagged with whether documents reference it.",
)
async def list_fiscal_years(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    rows = await FiscalYearService(db).list_fiscal_years()
    items = [
        FiscalYearListItem(**FiscalYearResponse.model_validate(year).model_dump(), has_documents=has_docs)
        for year, has_docs in rows
    ]
    return ListResponse[FiscalYearListItem](message=t("ok", lang), items=items)


@router.get(
    "/current",
    response_model=ItemResponse[FiscalYearResponse],
    summary="Current open fiscal year",
)
async def get_current_fiscal_year(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    year = await FiscalYearService(db).get_current()
    return ItemResponse[FiscalYearResponse](message=t("ok", lang), item=FiscalYearResponse.model_validate(year))


@router.get(
    "/{fiscal_year_id}",
    response_model=ItemResponse[FiscalYearResponse],
    summary="Get fiscal year",
)
async def get_fiscal_year(
    fiscal_year_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    year = await FiscalYearService(db).get_fiscal_year(fiscal_year_id)
    return ItemResponse[FiscalYearResponse](message=t("ok", lang), item=FiscalYearResponse.model_validate(year))


@router.post(
    "",
    response_model=ItemResponse[FiscalYearResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create fiscal year",
)
async def create_fiscal_year(
    request: FiscalYearCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    year = await FiscalYearService(db).create_fiscal_year(request)
    await db.commit()
    await db.refresh(year)
    return ItemResponse[FiscalYearResponse](message=t("created", lang), item=FiscalYearResponse.model_validate(year))


@router.patch(
    "/{fiscal_year_id}",
    response_model=ItemResponse[FiscalYearResponse],
    summary="Update fiscal year",
    description="Dates are frozen once documents reference the year.",
)
async def update_fiscal_year(
    fiscal_year_id: UUID,
    request: FiscalYearUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    year = await FiscalYearService(db).update_fiscal_year(fiscal_year_id, request)
    await db.commit()
    await db.refresh(year)
    return ItemResponse[FiscalYearResponse](message=t("updated", lang), item=FiscalYearResponse.model_validate(year))


@router.post(
    "/{fiscal_year_id}/close",
    response_model=ItemResponse[FiscalYearResponse],
    summary="Close fiscal year",
)
async def close_fiscal_year(
    fiscal_year_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    year = await FiscalYearService(db).close_fiscal_year(fiscal_year_id)
    await db.commit()
    await db.refresh(year)
    return ItemResponse[FiscalYearResponse](message=t("closedOk", lang), item=FiscalYearResponse.model_validate(year))


@router.post(
    "/{fiscal_year_id}/open",
    response_model=ItemResponse[FiscalYearResponse],
    summary="Open fiscal year",
    description="Closes every other year.",
)
async def open_fiscal_year(
    fiscal_year_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    year, changed = await FiscalYearService(db).open_fiscal_year(fiscal_year_id)
    await db.commit()
    await db.refresh(year)
    return ItemResponse[FiscalYearResponse](
        message=t("opened" if changed else "alreadyOpen", lang),
        item=FiscalYearResponse.model_validate(year),
    )


@router.post(
    "/{fiscal_year_id}/open-next",
    response_model=ItemResponse[FiscalYearResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Open the following fiscal year",
    description="Creates the year starting the day after a closed year ends and opens it.",
)
async def open_next_fiscal_year(
    fiscal_year_id: UUID,
    request: Optional[OpenNextRequest] = Body(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    name = request.name if request else None
    year = await FiscalYearService(db).open_next(fiscal_year_id, name=name, lang=lang)
    await db.commit()
    await db.refresh(year)
    return ItemResponse[FiscalYearResponse](message=t("opened", lang), item=FiscalYearResponse.model_validate(year))


@router.delete(
    "/{fiscal_year_id}",
    response_model=DataResponse[DeleteResult],
    summary="Delete fiscal year",
    description="If the open year is deleted its nearest neighbour is opened.",
)
async def delete_fiscal_year(
    fiscal_year_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    opened_id = await FiscalYearService(db).delete_fiscal_year(fiscal_year_id)
    await db.commit()
    return DataResponse[DeleteResult](
        message=t("deleted", lang),
        data=DeleteResult(id=fiscal_year_id, opened_id=opened_id),
    )
