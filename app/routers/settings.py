"""
Ledgerline - Settings Router

Operator-maintained settings, including the treasury code mappings
(``special`` rows) and handler start codes (``digits`` rows).
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.schemas.common import DataResponse, ItemResponse, ListResponse
from app.schemas.setting import SettingCreate, SettingResponse, SettingUpdate
from app.services.setting_service import SettingService
from app.utils.i18n import t


router = APIRouter()


@router.get("", response_model=ListResponse[SettingResponse], summary="List settings")
async def list_settings(
    code: Optional[str] = Query(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    rows = await SettingService(db).list_settings(code=code)
    return ListResponse[SettingResponse](message=t("ok", lang), items=[SettingResponse.model_validate(s) for s in rows])


@router.post(
    "",
    response_model=ItemResponse[SettingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create setting",
)
async def create_setting(
    request: SettingCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    setting = await SettingService(db).create_setting(request)
    await db.commit()
    await db.refresh(setting)
    return ItemResponse[SettingResponse](message=t("created", lang), item=SettingResponse.model_validate(setting))


@router.patch("/{setting_id}", response_model=ItemResponse[SettingResponse], summary="Update setting")
async def update_setting(
    setting_id: UUID,
    request: SettingUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    setting = await SettingService(db).update_setting(setting_id, request)
    await db.commit()
    await db.refresh(setting)
    return ItemResponse[SettingResponse](message=t("updated", lang), item=SettingResponse.model_validate(setting))


@router.delete("/{setting_id}", response_model=DataResponse[Dict[str, UUID]], summary="Delete setting")
async def delete_setting(
    setting_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await SettingService(db).delete_setting(setting_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": setting_id})
