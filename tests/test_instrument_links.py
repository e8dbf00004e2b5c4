"""
Ledgerline - Instrument Link Tests
"""

import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from app.models.treasury import InstrumentLink, LinkType
from app.services.instrument_link_service import (
    Card,
    Cash,
    Check,
    InstrumentLinkService,
    Transfer,
    instrument_ref,
)
from app.utils.error_handling import NotFoundException


class TestInstrumentRef:

    def test_api_objects_map_to_references(self):
        reader_id, account_id, check_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        assert instrument_ref(SimpleNamespace(type="cash")) == Cash()
        assert instrument_ref(SimpleNamespace(type="card", card_reader_id=reader_id)) == Card(reader_id)
        assert instrument_ref(SimpleNamespace(type="transfer", bank_account_id=account_id)) == Transfer(account_id)
        assert instrument_ref(SimpleNamespace(type="check", check_id=check_id)) == Check(check_id)
        assert instrument_ref(SimpleNamespace(type="checkin", check_id=check_id)) == Check(check_id)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            instrument_ref(SimpleNamespace(type="crypto"))


class TestInstrumentLinkService:

    @pytest.mark.asyncio
    async def test_cash_has_no_link(self, db_session):
        service = InstrumentLinkService(db_session)
        assert await service.get_or_create(Cash()) is None
        assert await service.find(Cash()) is None

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, db_session, card_reader, bank_account):
        service = InstrumentLinkService(db_session)
        reader_ref = Card(uuid.UUID(card_reader["id"]))

        first = await service.get_or_create(reader_ref)
        second = await service.get_or_create(reader_ref)
        transfer = await service.get_or_create(Transfer(uuid.UUID(bank_account["id"])))
        await db_session.commit()

        assert first.id == second.id
        assert first.instrument_type == LinkType.CARD
        assert first.card_reader_id == uuid.UUID(card_reader["id"])
        assert transfer.instrument_type == LinkType.TRANSFER
        assert transfer.id != first.id

        count = await db_session.execute(select(func.count(InstrumentLink.id)))
        assert count.scalar() == 2

    @pytest.mark.asyncio
    async def test_check_link(self, db_session, client, auth_headers):
        response = await client.post(
            "/api/v1/treasury/checks",
            json={"number": "55501", "amount": "300", "issue_date": "2026-02-01", "bank_name": "Tejarat"},
            headers=auth_headers,
        )
        check_id = uuid.UUID(response.json()["item"]["id"])

        link = await InstrumentLinkService(db_session).get_or_create(Check(check_id))
        assert link.instrument_type == LinkType.CHECK
        assert link.check_id == check_id

    @pytest.mark.asyncio
    async def test_missing_resource(self, db_session):
        service = InstrumentLinkService(db_session)
        with pytest.raises(NotFoundException):
            await service.get_or_create(Card(uuid.uuid4()))
        with pytest.raises(NotFoundException):
            await service.get_or_create(Check(uuid.uuid4()))
