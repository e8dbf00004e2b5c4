"""
Ledgerline - Receipt and Payment Tests

Item validation, check movements and posting to the ledger.
"""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.config import settings
from app.models.setting import Setting, SettingType
from app.services.code_mapping_service import (
    CASHBOX_START_CODE,
    CODE_TREASURY_CASH_RECEIPT,
    CODE_TREASURY_CHECK_PAYMENT,
    CodeMappingService,
)
from app.utils.error_handling import MissingCodeMappingError


def dec(value) -> Decimal:
    return Decimal(str(value))


async def incoming_check(client, auth_headers, number="55501", amount="50", **fields):
    payload = {
        "number": number,
        "amount": amount,
        "issue_date": "2026-02-01",
        "due_date": "2026-03-01",
        "bank_name": "Tejarat",
        **fields,
    }
    response = await client.post("/api/v1/treasury/checks", json=payload, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()["item"]


async def outgoing_check(client, auth_headers, checkbook, number="1000", amount="30"):
    response = await client.post(
        f"/api/v1/treasury/checkbooks/{checkbook['id']}/checks",
        json={"number": number, "amount": amount, "issue_date": "2026-02-05", "due_date": "2026-04-01"},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["item"]


async def get_check(client, auth_headers, check_id):
    response = await client.get(f"/api/v1/treasury/checks/{check_id}", headers=auth_headers)
    return response.json()["item"]


def receipt_payload(fiscal_year, items, total, cashbox=None, **fields):
    payload = {
        "date": "2026-02-10",
        "fiscal_year_id": str(fiscal_year.id),
        "total_amount": str(total),
        "items": items,
        **fields,
    }
    if cashbox is not None:
        payload["cashbox_id"] = cashbox["id"]
    return payload


class TestReceiptValidation:

    @pytest.mark.asyncio
    async def test_cash_and_check_need_a_cashbox(self, client: AsyncClient, auth_headers, fiscal_year):
        items = [
            {"instrument": {"type": "cash"}, "amount": "50"},
            {"instrument": {"type": "check", "check_id": str(uuid.uuid4())}, "amount": "50"},
        ]
        response = await client.post(
            "/api/v1/treasury/receipts", json=receipt_payload(fiscal_year, items, 100), headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "cashboxRequired"

    @pytest.mark.asyncio
    async def test_items_must_add_up(self, client: AsyncClient, auth_headers, fiscal_year, cashbox):
        items = [{"instrument": {"type": "cash"}, "amount": "40"}]
        response = await client.post(
            "/api/v1/treasury/receipts",
            json=receipt_payload(fiscal_year, items, 100, cashbox),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidTotal"

    @pytest.mark.asyncio
    async def test_items_required(self, client: AsyncClient, auth_headers, fiscal_year, cashbox):
        response = await client.post(
            "/api/v1/treasury/receipts",
            json=receipt_payload(fiscal_year, [], 0, cashbox),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "missingItems"

    @pytest.mark.asyncio
    async def test_transfer_needs_no_cashbox(self, client: AsyncClient, auth_headers, fiscal_year, bank_account):
        items = [{"instrument": {"type": "transfer", "bank_account_id": bank_account["id"]}, "amount": "75"}]
        response = await client.post(
            "/api/v1/treasury/receipts", json=receipt_payload(fiscal_year, items, 75), headers=auth_headers,
        )
        assert response.status_code == 201
        receipt = response.json()["item"]
        assert receipt["number"] == "1"
        assert receipt["status"] == "temporary"
        assert receipt["items"][0]["instrument"]["bank_account_id"] == bank_account["id"]

    @pytest.mark.asyncio
    async def test_outgoing_check_cannot_be_received(
        self, client: AsyncClient, auth_headers, fiscal_year, cashbox, checkbook,
    ):
        check = await outgoing_check(client, auth_headers, checkbook)
        items = [{"instrument": {"type": "check", "check_id": check["id"]}, "amount": "30"}]
        response = await client.post(
            "/api/v1/treasury/receipts",
            json=receipt_payload(fiscal_year, items, 30, cashbox),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "checkTypeMismatch"

    @pytest.mark.asyncio
    async def test_card_payments_are_rejected(self, client: AsyncClient, auth_headers, fiscal_year, card_reader):
        items = [{"instrument": {"type": "card", "card_reader_id": card_reader["id"]}, "amount": "10"}]
        response = await client.post(
            "/api/v1/treasury/payments", json=receipt_payload(fiscal_year, items, 10), headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidInput"


class TestReceipts:

    @pytest.mark.asyncio
    async def test_received_check_lands_in_cashbox(self, client: AsyncClient, auth_headers, fiscal_year, cashbox):
        check = await incoming_check(client, auth_headers)
        assert check["status"] == "created"

        items = [
            {"instrument": {"type": "cash"}, "amount": "50"},
            {"instrument": {"type": "check", "check_id": check["id"]}, "amount": "50"},
        ]
        response = await client.post(
            "/api/v1/treasury/receipts",
            json=receipt_payload(fiscal_year, items, 100, cashbox),
            headers=auth_headers,
        )
        assert response.status_code == 201
        receipt = response.json()["item"]

        check = await get_check(client, auth_headers, check["id"])
        assert check["status"] == "incashbox"
        assert check["cashbox_id"] == cashbox["id"]

        response = await client.get(
            "/api/v1/treasury/checks", params={"available": "true"}, headers=auth_headers,
        )
        assert response.json()["items"] == []

        # Deleting the receipt takes the check back out of the cashbox.
        response = await client.delete(f"/api/v1/treasury/receipts/{receipt['id']}", headers=auth_headers)
        assert response.status_code == 200
        check = await get_check(client, auth_headers, check["id"])
        assert check["status"] == "created"
        assert check["cashbox_id"] is None

    @pytest.mark.asyncio
    async def test_post_receipt_builds_journal(
        self, client: AsyncClient, auth_headers, codes, fiscal_year, cashbox, treasury_mappings,
    ):
        check = await incoming_check(client, auth_headers)
        items = [
            {"instrument": {"type": "cash"}, "amount": "50"},
            {"instrument": {"type": "check", "check_id": check["id"]}, "amount": "50"},
        ]
        response = await client.post(
            "/api/v1/treasury/receipts",
            json=receipt_payload(fiscal_year, items, 100, cashbox, description="Invoice 17"),
            headers=auth_headers,
        )
        receipt = response.json()["item"]

        response = await client.post(f"/api/v1/treasury/receipts/{receipt['id']}/post", headers=auth_headers)
        assert response.status_code == 200, response.text
        sent = response.json()["item"]
        assert sent["status"] == "sent"
        assert sent["journal_id"] is not None
        assert response.json()["message"] == "Document sent to the ledger"

        response = await client.get(f"/api/v1/journals/{sent['journal_id']}", headers=auth_headers)
        journal = response.json()["item"]
        assert journal["status"] == "temporary"
        assert journal["type"] == "receipt"
        assert journal["provider"] == "treasury"
        assert [
            (item["code_id"], dec(item["debit"]), dec(item["credit"]), item["description"])
            for item in journal["items"]
        ] == [
            (str(codes["cash"].id), Decimal("50"), Decimal("0"), "Receipt Cash"),
            (str(codes["checks_receivable"].id), Decimal("50"), Decimal("0"), "Check: Tejarat 55501 2026-03-01"),
            (str(codes["customers"].id), Decimal("0"), Decimal("100"), "Invoice 17"),
        ]
        assert journal["items"][0]["detail_id"] == cashbox["handler_detail_id"]

        response = await client.get(
            f"/api/v1/treasury/receipts/by-journal/{sent['journal_id']}", headers=auth_headers,
        )
        assert response.json()["item"]["id"] == receipt["id"]

        response = await client.post(f"/api/v1/treasury/receipts/{receipt['id']}/post", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "alreadySent"

        response = await client.patch(
            f"/api/v1/treasury/receipts/{receipt['id']}",
            json={"description": "late edit"},
            headers=auth_headers,
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_special_code_overrides_counterparty(
        self, client: AsyncClient, auth_headers, codes, fiscal_year, cashbox, treasury_mappings,
    ):
        items = [{"instrument": {"type": "cash"}, "amount": "20"}]
        payload = receipt_payload(fiscal_year, items, 20, cashbox, special_code_id=str(codes["suppliers"].id))
        receipt = (await client.post("/api/v1/treasury/receipts", json=payload, headers=auth_headers)).json()["item"]

        sent = (await client.post(f"/api/v1/treasury/receipts/{receipt['id']}/post", headers=auth_headers)).json()
        journal = (await client.get(f"/api/v1/journals/{sent['item']['journal_id']}", headers=auth_headers)).json()
        assert journal["item"]["items"][-1]["code_id"] == str(codes["suppliers"].id)

    @pytest.mark.asyncio
    async def test_posting_journal_makes_receipt_permanent(
        self, client: AsyncClient, auth_headers, fiscal_year, cashbox, treasury_mappings,
    ):
        items = [{"instrument": {"type": "cash"}, "amount": "20"}]
        payload = receipt_payload(fiscal_year, items, 20, cashbox)
        receipt = (await client.post("/api/v1/treasury/receipts", json=payload, headers=auth_headers)).json()["item"]
        sent = (await client.post(f"/api/v1/treasury/receipts/{receipt['id']}/post", headers=auth_headers)).json()
        journal_id = sent["item"]["journal_id"]

        response = await client.post(f"/api/v1/journals/{journal_id}/post", headers=auth_headers)
        assert response.status_code == 200

        response = await client.get(f"/api/v1/treasury/receipts/{receipt['id']}", headers=auth_headers)
        assert response.json()["item"]["status"] == "permanent"

    @pytest.mark.asyncio
    async def test_deleting_journal_detaches_receipt(
        self, client: AsyncClient, auth_headers, fiscal_year, cashbox, treasury_mappings,
    ):
        items = [{"instrument": {"type": "cash"}, "amount": "20"}]
        payload = receipt_payload(fiscal_year, items, 20, cashbox)
        receipt = (await client.post("/api/v1/treasury/receipts", json=payload, headers=auth_headers)).json()["item"]
        sent = (await client.post(f"/api/v1/treasury/receipts/{receipt['id']}/post", headers=auth_headers)).json()

        response = await client.delete(f"/api/v1/journals/{sent['item']['journal_id']}", headers=auth_headers)
        assert response.status_code == 200

        response = await client.get(f"/api/v1/treasury/receipts/{receipt['id']}", headers=auth_headers)
        detached = response.json()["item"]
        assert detached["status"] == "temporary"
        assert detached["journal_id"] is None

    @pytest.mark.asyncio
    async def test_missing_mapping(self, client: AsyncClient, auth_headers, codes, fiscal_year, cashbox):
        items = [{"instrument": {"type": "cash"}, "amount": "20"}]
        payload = receipt_payload(fiscal_year, items, 20, cashbox)
        receipt = (await client.post("/api/v1/treasury/receipts", json=payload, headers=auth_headers)).json()["item"]

        response = await client.post(f"/api/v1/treasury/receipts/{receipt['id']}/post", headers=auth_headers)
        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "missingCodeMapping"
        assert "CODE_TREASURY_CASH_RECEIPT" in body["message"]

        response = await client.get(f"/api/v1/treasury/receipts/{receipt['id']}", headers=auth_headers)
        assert response.json()["item"]["status"] == "temporary"


class TestPayments:

    async def _checks_in_hand(self, client, auth_headers, fiscal_year, cashbox, checkbook):
        received = await incoming_check(client, auth_headers, number="77001", amount="40")
        items = [{"instrument": {"type": "check", "check_id": received["id"]}, "amount": "40"}]
        response = await client.post(
            "/api/v1/treasury/receipts",
            json=receipt_payload(fiscal_year, items, 40, cashbox),
            headers=auth_headers,
        )
        assert response.status_code == 201
        issued = await outgoing_check(client, auth_headers, checkbook, number="1000", amount="60")
        return received, issued

    @pytest.mark.asyncio
    async def test_checkin_requires_cashbox(
        self, client: AsyncClient, auth_headers, fiscal_year, cashbox, checkbook,
    ):
        received, _ = await self._checks_in_hand(client, auth_headers, fiscal_year, cashbox, checkbook)
        items = [{"instrument": {"type": "checkin", "check_id": received["id"]}, "amount": "40"}]
        response = await client.post(
            "/api/v1/treasury/payments", json=receipt_payload(fiscal_year, items, 40), headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "cashboxRequired"

    @pytest.mark.asyncio
    async def test_payment_spends_checks(
        self, client: AsyncClient, auth_headers, codes, fiscal_year, cashbox, checkbook, treasury_mappings,
    ):
        received, issued = await self._checks_in_hand(client, auth_headers, fiscal_year, cashbox, checkbook)
        items = [
            {"instrument": {"type": "checkin", "check_id": received["id"]}, "amount": "40"},
            {"instrument": {"type": "check", "check_id": issued["id"]}, "amount": "60"},
        ]
        response = await client.post(
            "/api/v1/treasury/payments",
            json=receipt_payload(fiscal_year, items, 100, cashbox, description="Supplier settlement"),
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        payment = response.json()["item"]
        assert payment["number"] == "1"

        for check in (received, issued):
            assert (await get_check(client, auth_headers, check["id"]))["status"] == "spent"

        response = await client.post(f"/api/v1/treasury/payments/{payment['id']}/post", headers=auth_headers)
        assert response.status_code == 200, response.text
        journal_id = response.json()["item"]["journal_id"]

        journal = (await client.get(f"/api/v1/journals/{journal_id}", headers=auth_headers)).json()["item"]
        assert journal["type"] == "payment"
        assert [(item["code_id"], dec(item["debit"]), dec(item["credit"])) for item in journal["items"]] == [
            (str(codes["suppliers"].id), Decimal("100"), Decimal("0")),
            (str(codes["checks_receivable"].id), Decimal("0"), Decimal("40")),
            (str(codes["checks_payable"].id), Decimal("0"), Decimal("60")),
        ]

        response = await client.get(f"/api/v1/treasury/payments/by-journal/{journal_id}", headers=auth_headers)
        assert response.json()["item"]["id"] == payment["id"]

    @pytest.mark.asyncio
    async def test_deleting_payment_restores_checks(
        self, client: AsyncClient, auth_headers, fiscal_year, cashbox, checkbook,
    ):
        received, issued = await self._checks_in_hand(client, auth_headers, fiscal_year, cashbox, checkbook)
        items = [
            {"instrument": {"type": "checkin", "check_id": received["id"]}, "amount": "40"},
            {"instrument": {"type": "check", "check_id": issued["id"]}, "amount": "60"},
        ]
        payment = (await client.post(
            "/api/v1/treasury/payments",
            json=receipt_payload(fiscal_year, items, 100, cashbox),
            headers=auth_headers,
        )).json()["item"]

        response = await client.delete(f"/api/v1/treasury/payments/{payment['id']}", headers=auth_headers)
        assert response.status_code == 200

        assert (await get_check(client, auth_headers, received["id"]))["status"] == "incashbox"
        assert (await get_check(client, auth_headers, issued["id"]))["status"] == "issued"

    @pytest.mark.asyncio
    async def test_received_check_cannot_be_issued_as_ours(
        self, client: AsyncClient, auth_headers, fiscal_year, cashbox, checkbook,
    ):
        received, _ = await self._checks_in_hand(client, auth_headers, fiscal_year, cashbox, checkbook)
        items = [{"instrument": {"type": "check", "check_id": received["id"]}, "amount": "40"}]
        response = await client.post(
            "/api/v1/treasury/payments", json=receipt_payload(fiscal_year, items, 40), headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "checkTypeMismatch"


class TestCodeMappingResolution:

    @pytest.mark.asyncio
    async def test_configured_code_wins_over_setting(self, db_session, codes, monkeypatch):
        db_session.add(Setting(
            code=CODE_TREASURY_CASH_RECEIPT, name="Cash receipt", type=SettingType.SPECIAL,
            special_id=codes["cash"].id,
        ))
        await db_session.flush()
        monkeypatch.setattr(settings, "code_treasury_cash_receipt", str(codes["bank"].id))

        resolved = await CodeMappingService(db_session).resolve_code_id(CODE_TREASURY_CASH_RECEIPT)
        assert resolved == codes["bank"].id

    @pytest.mark.asyncio
    async def test_dangling_configured_code_falls_through_to_setting(self, db_session, codes, monkeypatch):
        db_session.add(Setting(
            code=CODE_TREASURY_CASH_RECEIPT, name="Cash receipt", type=SettingType.SPECIAL,
            special_id=codes["cash"].id,
        ))
        await db_session.flush()
        monkeypatch.setattr(settings, "code_treasury_cash_receipt", str(uuid.uuid4()))

        resolved = await CodeMappingService(db_session).resolve_code_id(CODE_TREASURY_CASH_RECEIPT)
        assert resolved == codes["cash"].id

    @pytest.mark.asyncio
    async def test_fallback_code(self, db_session, codes):
        service = CodeMappingService(db_session)
        resolved = await service.resolve_code_id(CODE_TREASURY_CHECK_PAYMENT, fallback_code="210102")
        assert resolved == codes["checks_payable"].id

        with pytest.raises(MissingCodeMappingError):
            await service.resolve_code_id(CODE_TREASURY_CHECK_PAYMENT, fallback_code="999999")

    @pytest.mark.asyncio
    async def test_setting_with_unknown_code_uses_fallback(self, db_session, codes):
        db_session.add(Setting(
            code=CODE_TREASURY_CHECK_PAYMENT, name="Check payment", type=SettingType.SPECIAL,
            special_id=uuid.uuid4(),
        ))
        await db_session.flush()

        resolved = await CodeMappingService(db_session).resolve_code_id(
            CODE_TREASURY_CHECK_PAYMENT, fallback_code="210101",
        )
        assert resolved == codes["suppliers"].id

    @pytest.mark.asyncio
    async def test_numeric_setting_order(self, db_session, monkeypatch):
        service = CodeMappingService(db_session)
        assert await service.resolve_numeric_setting(CASHBOX_START_CODE, 6000) == 6000

        monkeypatch.setattr(settings, "cashbox_start_code", 6500)
        assert await service.resolve_numeric_setting(CASHBOX_START_CODE, 6000) == 6500

        db_session.add(Setting(code=CASHBOX_START_CODE, name="Cashbox start", type=SettingType.DIGITS, value="6700"))
        await db_session.flush()
        assert await service.resolve_numeric_setting(CASHBOX_START_CODE, 6000) == 6700
