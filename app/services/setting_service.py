"""
Ledgerline - Setting Service

CRUD for the operator-maintained settings table.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.setting import Setting
from app.models.taxonomy import Code
from app.schemas.setting import SettingCreate, SettingUpdate
from app.utils.error_handling import DuplicateEntryException, NotFoundException

logger = logging.getLogger(__name__)


class SettingService:
    """Service for settings rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_settings(self, code: Optional[str] = None) -> List[Setting]:
        query = select(Setting)
        if code:
            query = query.where(Setting.code == code)
        result = await self.db.execute(query.order_by(Setting.code))
        return list(result.scalars().all())

    async def get_setting(self, setting_id: uuid.UUID) -> Setting:
        setting = await self.db.get(Setting, setting_id)
        if not setting:
            raise NotFoundException("Setting", setting_id)
        return setting

    async def _ensure_code_target(self, special_id: Optional[uuid.UUID]) -> None:
        if special_id and not await self.db.get(Code, special_id):
            raise NotFoundException("Code", special_id)

    async def create_setting(self, data: SettingCreate) -> Setting:
        code = data.code.strip()
        result = await self.db.execute(select(Setting.id).where(Setting.code == code))
        if result.first() is not None:
            raise DuplicateEntryException("Setting", "code", code)
        await self._ensure_code_target(data.special_id)

        setting = Setting(
            code=code,
            name=data.name.strip(),
            type=data.type,
            value=data.value,
            special_id=data.special_id,
        )
        self.db.add(setting)
        await self.db.flush()
        logger.info(f"Setting {code} created")
        return setting

    async def update_setting(self, setting_id: uuid.UUID, data: SettingUpdate) -> Setting:
        setting = await self.get_setting(setting_id)
        changes = data.model_dump(exclude_unset=True)
        if "special_id" in changes:
            await self._ensure_code_target(changes["special_id"])
        for name, value in changes.items():
            if value is None and name in ("name", "type"):
                continue
            setattr(setting, name, value.strip() if name == "name" else value)
        await self.db.flush()
        logger.info(f"Setting {setting.code} updated")
        return setting

    async def delete_setting(self, setting_id: uuid.UUID) -> None:
        setting = await self.get_setting(setting_id)
        await self.db.delete(setting)
        await self.db.flush()
        logger.info(f"Setting {setting.code} deleted")
