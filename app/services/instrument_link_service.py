"""
Ledgerline - Instrument Link Service

Receipt and payment items point at the resource they move money through
via an ``instrument_links`` row. References are a small tagged union:

    Cash()                 no link row
    Card(card_reader_id)
    Transfer(bank_account_id)
    Check(check_id)

Each resource has at most one link row; get_or_create is idempotent.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.treasury import BankAccount, CardReader, InstrumentLink, LinkType
from app.models.treasury import Check as CheckModel
from app.utils.error_handling import NotFoundException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cash:
    pass


@dataclass(frozen=True)
class Card:
    card_reader_id: uuid.UUID


@dataclass(frozen=True)
class Transfer:
    bank_account_id: uuid.UUID


@dataclass(frozen=True)
class Check:
    check_id: uuid.UUID


InstrumentRef = Union[Cash, Card, Transfer, Check]


def instrument_ref(data) -> InstrumentRef:
    """Convert an API instrument object (``{type, ...id}``) to a reference."""
    kind = data.type
    if kind == "cash":
        return Cash()
    if kind == "card":
        return Card(data.card_reader_id)
    if kind == "transfer":
        return Transfer(data.bank_account_id)
    if kind in ("check", "checkin"):
        return Check(data.check_id)
    raise ValueError(f"Unknown instrument type: {kind}")


class InstrumentLinkService:
    """Resolves instrument references to link rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _target(ref: InstrumentRef):
        """(link type, link column, resource model, resource id) for a non-cash ref."""
        if isinstance(ref, Card):
            return LinkType.CARD, InstrumentLink.card_reader_id, CardReader, ref.card_reader_id
        if isinstance(ref, Transfer):
            return LinkType.TRANSFER, InstrumentLink.bank_account_id, BankAccount, ref.bank_account_id
        if isinstance(ref, Check):
            return LinkType.CHECK, InstrumentLink.check_id, CheckModel, ref.check_id
        raise TypeError(f"Unsupported instrument reference: {ref!r}")

    async def find(self, ref: InstrumentRef) -> Optional[InstrumentLink]:
        if isinstance(ref, Cash):
            return None
        _, column, _, target_id = self._target(ref)
        result = await self.db.execute(select(InstrumentLink).where(column == target_id))
        return result.scalar_one_or_none()

    async def get_or_create(self, ref: InstrumentRef) -> Optional[InstrumentLink]:
        """
        Return the link row for ``ref``, creating it on first use.

        Cash has no link and yields None. The referenced resource must
        exist (404). The insert runs in a savepoint; losing a race to a
        concurrent creator re-reads the winning row.
        """
        if isinstance(ref, Cash):
            return None

        link = await self.find(ref)
        if link is not None:
            return link

        link_type, column, model, target_id = self._target(ref)
        if not await self.db.get(model, target_id):
            raise NotFoundException(model.__name__, target_id)

        link = InstrumentLink(instrument_type=link_type)
        setattr(link, column.key, target_id)
        try:
            async with self.db.begin_nested():
                self.db.add(link)
        except IntegrityError:
            logger.debug(f"Instrument link for {link_type.value} {target_id} created concurrently")
            link = await self.find(ref)
        else:
            logger.info(f"Instrument link created for {link_type.value} {target_id}")
        return link

