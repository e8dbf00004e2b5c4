"""
Ledgerline - Codes Router

Chart of accounts: group -> general -> specific codes.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.models.taxonomy import CodeKind
from app.schemas.common import DataResponse, ItemResponse, ListResponse
from app.schemas.taxonomy import CodeCreate, CodeResponse, CodeTreeNode, CodeUpdate
from app.services.taxonomy_service import TaxonomyService
from app.utils.i18n import t


router = APIRouter()


@router.get(
    "",
    response_model=ListResponse[CodeResponse],
    summary="List codes",
)
async def list_codes(
    kind: Optional[CodeKind] = Query(None, description="group, general or specific"),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Matches code or title"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    codes = await TaxonomyService(db).list_codes(kind=kind, is_active=is_active, search=search)
    return ListResponse[CodeResponse](
        message=t("ok", lang),
        items=[CodeResponse.model_validate(code) for code in codes],
    )


@router.get(
    "/tree",
    response_model=DataResponse[List[CodeTreeNode]],
    summary="Code tree",
)
async def get_code_tree(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    tree = await TaxonomyService(db).get_code_tree()
    return DataResponse[List[CodeTreeNode]](message=t("ok", lang), data=tree)


@router.get(
    "/{code_id}",
    response_model=ItemResponse[CodeResponse],
    summary="Get code",
)
async def get_code(
    code_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    code = await TaxonomyService(db).get_code(code_id)
    return ItemResponse[CodeResponse](message=t("ok", lang), item=CodeResponse.model_validate(code))


@router.post(
    "",
    response_model=ItemResponse[CodeResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create code",
)
async def create_code(
    request: CodeCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    code = await TaxonomyService(db).create_code(request)
    await db.commit()
    await db.refresh(code)
    return ItemResponse[CodeResponse](message=t("created", lang), item=CodeResponse.model_validate(code))


@router.patch(
    "/{code_id}",
    response_model=ItemResponse[CodeResponse],
    summary="Update code",
)
async def update_code(
    code_id: UUID,
    request: CodeUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    code = await TaxonomyService(db).update_code(code_id, request)
    await db.commit()
    await db.refresh(code)
    return ItemResponse[CodeResponse](message=t("updated", lang), item=CodeResponse.model_validate(code))


@router.delete(
    "/{code_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete code",
    description="Rejected while the code has children or journal items.",
)
async def delete_code(
    code_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TaxonomyService(db).delete_code(code_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": code_id})
