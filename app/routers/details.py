"""
Ledgerline - Details Router

Four-digit sub-ledger details and their links to leaf detail levels.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.models.taxonomy import DetailKind
from app.schemas.common import DataResponse, ItemResponse, ListResponse
from app.schemas.taxonomy import (
    DetailCreate,
    DetailLevelLinkView,
    DetailResponse,
    DetailUpdate,
    SuggestedCode,
)
from app.services.taxonomy_service import TaxonomyService
from app.utils.i18n import t


router = APIRouter()


@router.get(
    "",
    response_model=ListResponse[DetailResponse],
    summary="List details",
)
async def list_details(
    search: Optional[str] = Query(None, description="Matches code or title"),
    is_active: Optional[bool] = Query(None),
    kind: Optional[DetailKind] = Query(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    details = await TaxonomyService(db).list_details(search=search, is_active=is_active, kind=kind)
    return ListResponse[DetailResponse](
        message=t("ok", lang),
        items=[DetailResponse.model_validate(detail) for detail in details],
    )


@router.get(
    "/suggest-next",
    response_model=DataResponse[SuggestedCode],
    summary="Suggest next detail code",
    description="Smallest unused four-digit code.",
)
async def suggest_next_code(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    code = await TaxonomyService(db).suggest_next_detail_code()
    return DataResponse[SuggestedCode](message=t("ok", lang), data=SuggestedCode(code=code))


@router.get(
    "/{detail_id}",
    response_model=ItemResponse[DetailResponse],
    summary="Get detail",
)
async def get_detail(
    detail_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    detail = await TaxonomyService(db).get_detail(detail_id)
    return ItemResponse[DetailResponse](message=t("ok", lang), item=DetailResponse.model_validate(detail))


@router.get(
    "/{detail_id}/detail-levels",
    response_model=ListResponse[DetailLevelLinkView],
    summary="Detail levels linked to a detail",
)
async def get_detail_levels_of(
    detail_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    rows = await TaxonomyService(db).get_detail_levels_of(detail_id)
    items: List[DetailLevelLinkView] = [
        DetailLevelLinkView(
            detail_level_id=level.id,
            code=level.code,
            title=level.title,
            is_primary=link.is_primary,
            position=link.position,
        )
        for level, link in rows
    ]
    return ListResponse[DetailLevelLinkView](message=t("ok", lang), items=items)


@router.post(
    "",
    response_model=ItemResponse[DetailResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create detail",
)
async def create_detail(
    request: DetailCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    detail = await TaxonomyService(db).create_detail(request)
    await db.commit()
    await db.refresh(detail)
    return ItemResponse[DetailResponse](message=t("created", lang), item=DetailResponse.model_validate(detail))


@router.patch(
    "/{detail_id}",
    response_model=ItemResponse[DetailResponse],
    summary="Update detail",
)
async def update_detail(
    detail_id: UUID,
    request: DetailUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    detail = await TaxonomyService(db).update_detail(detail_id, request)
    await db.commit()
    await db.refresh(detail)
    return ItemResponse[DetailResponse](message=t("updated", lang), item=DetailResponse.model_validate(detail))


@router.delete(
    "/{detail_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete detail",
)
async def delete_detail(
    detail_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TaxonomyService(db).delete_detail(detail_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": detail_id})
