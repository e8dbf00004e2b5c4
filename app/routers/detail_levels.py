"""
Ledgerline - Detail Levels Router

Classification tree that details hang from. Levels can restrict
themselves to a set of specific codes.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.schemas.common import DataResponse, ItemResponse, ListResponse
from app.schemas.taxonomy import (
    DetailLevelCreate,
    DetailLevelResponse,
    DetailLevelTreeNode,
    DetailLevelUpdate,
)
from app.services.taxonomy_service import TaxonomyService
from app.utils.i18n import t


router = APIRouter()


@router.get(
    "",
    response_model=ListResponse[DetailLevelResponse],
    summary="List detail levels",
)
async def list_detail_levels(
    is_active: Optional[bool] = Query(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    levels = await TaxonomyService(db).list_detail_levels(is_active=is_active)
    return ListResponse[DetailLevelResponse](
        message=t("ok", lang),
        items=[DetailLevelResponse.model_validate(level) for level in levels],
    )


@router.get(
    "/tree",
    response_model=DataResponse[List[DetailLevelTreeNode]],
    summary="Detail level tree",
)
async def get_detail_level_tree(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    tree = await TaxonomyService(db).get_detail_level_tree()
    return DataResponse[List[DetailLevelTreeNode]](message=t("ok", lang), data=tree)


@router.get(
    "/children",
    response_model=ListResponse[DetailLevelResponse],
    summary="Children of a detail level",
    description="Roots when parent_id is omitted.",
)
async def list_children(
    parent_id: Optional[UUID] = Query(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    levels = await TaxonomyService(db).list_detail_level_children(parent_id)
    return ListResponse[DetailLevelResponse](
        message=t("ok", lang),
        items=[DetailLevelResponse.model_validate(level) for level in levels],
    )


@router.get(
    "/{level_id}",
    response_model=ItemResponse[DetailLevelResponse],
    summary="Get detail level",
)
async def get_detail_level(
    level_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    level = await TaxonomyService(db).get_detail_level(level_id)
    return ItemResponse[DetailLevelResponse](message=t("ok", lang), item=DetailLevelResponse.model_validate(level))


@router.post(
    "",
    response_model=ItemResponse[DetailLevelResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create detail level",
)
async def create_detail_level(
    request: DetailLevelCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    level = await TaxonomyService(db).create_detail_level(request)
    await db.commit()
    await db.refresh(level)
    return ItemResponse[DetailLevelResponse](message=t("created", lang), item=DetailLevelResponse.model_validate(level))


@router.patch(
    "/{level_id}",
    response_model=ItemResponse[DetailLevelResponse],
    summary="Update detail level",
)
async def update_detail_level(
    level_id: UUID,
    request: DetailLevelUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    level = await TaxonomyService(db).update_detail_level(level_id, request)
    await db.commit()
    await db.refresh(level)
    return ItemResponse[DetailLevelResponse](message=t("updated", lang), item=DetailLevelResponse.model_validate(level))


@router.delete(
    "/{level_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete detail level",
)
async def delete_detail_level(
    level_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TaxonomyService(db).delete_detail_level(level_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": level_id})
