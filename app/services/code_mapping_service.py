"""
Ledgerline - Code Mapping Service

Resolves the named account-code mappings used by the treasury bridge
(``CODE_TREASURY_CASH_RECEIPT`` and friends) and numeric settings such
as handler detail start codes.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.setting import Setting
from app.models.taxonomy import Code
from app.utils.error_handling import MissingCodeMappingError

logger = logging.getLogger(__name__)


# Mapping names
CODE_TREASURY_CASH_RECEIPT = "CODE_TREASURY_CASH_RECEIPT"
CODE_TREASURY_CARD_RECEIPT = "CODE_TREASURY_CARD_RECEIPT"
CODE_TREASURY_TRANSFER_RECEIPT = "CODE_TREASURY_TRANSFER_RECEIPT"
CODE_TREASURY_CHECK_RECEIPT = "CODE_TREASURY_CHECK_RECEIPT"
CODE_TREASURY_COUNTERPARTY_RECEIPT = "CODE_TREASURY_COUNTERPARTY_RECEIPT"
CODE_TREASURY_CASH_PAYMENT = "CODE_TREASURY_CASH_PAYMENT"
CODE_TREASURY_TRANSFER_PAYMENT = "CODE_TREASURY_TRANSFER_PAYMENT"
CODE_TREASURY_CHECK_PAYMENT = "CODE_TREASURY_CHECK_PAYMENT"
CODE_TREASURY_COUNTERPARTY_PAYMENT = "CODE_TREASURY_COUNTERPARTY_PAYMENT"

CASHBOX_START_CODE = "CASHBOX_START_CODE"
BANK_DETAIL_START_CODE = "BANK_DETAIL_START_CODE"
CARD_READER_DETAIL_START_CODE = "CARD_READER_DETAIL_START_CODE"


def _as_uuid(value) -> Optional[uuid.UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _as_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class CodeMappingService:
    """Looks up configured account codes and numeric settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _code_exists(self, code_id: uuid.UUID) -> bool:
        result = await self.db.execute(select(Code.id).where(Code.id == code_id))
        return result.first() is not None

    async def _setting(self, code: str) -> Optional[Setting]:
        result = await self.db.execute(select(Setting).where(Setting.code == code))
        return result.scalar_one_or_none()

    async def resolve_code_id(self, name: str, fallback_code: Optional[str] = None) -> uuid.UUID:
        """
        Resolve mapping ``name`` to a ``codes.id``.

        Order: configured value (env) -> settings row special_id ->
        ``fallback_code`` looked up by code -> MissingCodeMappingError.
        """
        configured = _as_uuid(getattr(settings, name.lower(), None))
        if configured and await self._code_exists(configured):
            return configured
        if configured:
            logger.warning(f"Configured {name}={configured} does not match any code")

        row = await self._setting(name)
        if row is not None and row.special_id and await self._code_exists(row.special_id):
            return row.special_id

        if fallback_code:
            result = await self.db.execute(select(Code.id).where(Code.code == fallback_code))
            code_id = result.scalar_one_or_none()
            if code_id:
                return code_id

        raise MissingCodeMappingError(name)

    async def resolve_numeric_setting(self, code: str, default: int) -> int:
        """Digits setting value, then configured value, then ``default``."""
        row = await self._setting(code)
        if row is not None:
            value = _as_int(row.value)
            if value is not None:
                return value
        configured = _as_int(getattr(settings, code.lower(), None))
        if configured is not None:
            return configured
        return default
