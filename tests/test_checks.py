"""
Ledgerline - Treasury Resource and Check Tests

Handler details for cashboxes, bank accounts and card readers;
checkbook serial ranges and check lifecycle.
"""

import pytest
from httpx import AsyncClient


async def issue(client, auth_headers, checkbook, number, amount="10"):
    return await client.post(
        f"/api/v1/treasury/checkbooks/{checkbook['id']}/checks",
        json={"number": number, "amount": amount, "issue_date": "2026-02-05"},
        headers=auth_headers,
    )


async def get_detail(client, auth_headers, detail_id):
    response = await client.get(f"/api/v1/details/{detail_id}", headers=auth_headers)
    assert response.status_code == 200
    return response.json()["item"]


class TestHandlers:

    @pytest.mark.asyncio
    async def test_cashbox_codes_start_at_6000(self, client: AsyncClient, auth_headers, cashbox):
        assert cashbox["code"] == "6000"
        handler = await get_detail(client, auth_headers, cashbox["handler_detail_id"])
        assert handler["code"] == "6000"
        assert handler["title"] == "Main cashbox"
        assert handler["kind"] == "system_managed"

        response = await client.get("/api/v1/treasury/cashboxes/next-code", headers=auth_headers)
        assert response.json()["data"]["code"] == "6001"

    @pytest.mark.asyncio
    async def test_cashbox_rename_follows_handler(self, client: AsyncClient, auth_headers, cashbox):
        response = await client.patch(
            f"/api/v1/treasury/cashboxes/{cashbox['id']}",
            json={"name": "Front desk", "is_active": False},
            headers=auth_headers,
        )
        assert response.status_code == 200

        handler = await get_detail(client, auth_headers, cashbox["handler_detail_id"])
        assert handler["title"] == "Front desk"
        assert handler["is_active"] is False

    @pytest.mark.asyncio
    async def test_cashbox_delete_removes_handler(self, client: AsyncClient, auth_headers, cashbox):
        response = await client.delete(f"/api/v1/treasury/cashboxes/{cashbox['id']}", headers=auth_headers)
        assert response.status_code == 200

        response = await client.get(f"/api/v1/details/{cashbox['handler_detail_id']}", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_cashbox_code(self, client: AsyncClient, auth_headers, cashbox):
        response = await client.post(
            "/api/v1/treasury/cashboxes",
            json={"code": "6000", "name": "Second"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "duplicateCode"

    @pytest.mark.asyncio
    async def test_bank_and_card_reader_handlers(self, client: AsyncClient, auth_headers, bank_account, card_reader):
        account_handler = await get_detail(client, auth_headers, bank_account["handler_detail_id"])
        assert account_handler["code"] == "6100"
        assert account_handler["title"] == "Operating account - 0101-555-01"

        reader_handler = await get_detail(client, auth_headers, card_reader["handler_detail_id"])
        assert reader_handler["code"] == "6200"
        assert reader_handler["title"] == "Saman - T-9001"

    @pytest.mark.asyncio
    async def test_start_code_setting(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/settings",
            json={"code": "BANK_DETAIL_START_CODE", "name": "Bank start code", "type": "digits", "value": "7100"},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text

        response = await client.post(
            "/api/v1/treasury/bank-accounts",
            json={"name": "Reserve", "account_number": "0202-1"},
            headers=auth_headers,
        )
        handler = await get_detail(client, auth_headers, response.json()["item"]["handler_detail_id"])
        assert handler["code"] == "7100"

    @pytest.mark.asyncio
    async def test_duplicate_account_number(self, client: AsyncClient, auth_headers, bank_account):
        response = await client.post(
            "/api/v1/treasury/bank-accounts",
            json={"name": "Copy", "account_number": " 0101-555-01 "},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "duplicateAccountNumber"


class TestCheckbooks:

    @pytest.mark.asyncio
    async def test_last_serial_exhausts_checkbook(self, client: AsyncClient, auth_headers, bank_account):
        response = await client.post(
            f"/api/v1/treasury/bank-accounts/{bank_account['id']}/checkbooks",
            json={"start_number": 1, "page_count": 10},
            headers=auth_headers,
        )
        checkbook = response.json()["item"]
        assert checkbook["end_number"] == 10
        assert checkbook["status"] == "active"

        response = await issue(client, auth_headers, checkbook, "10")
        assert response.status_code == 201

        response = await client.get(f"/api/v1/treasury/checkbooks/{checkbook['id']}", headers=auth_headers)
        assert response.json()["item"]["status"] == "exhausted"

        response = await issue(client, auth_headers, checkbook, "3")
        assert response.status_code == 409
        assert response.json()["code"] == "checkbookInactive"

    @pytest.mark.asyncio
    async def test_serial_must_be_in_range(self, client: AsyncClient, auth_headers, checkbook):
        response = await issue(client, auth_headers, checkbook, "1010")
        assert response.status_code == 400
        assert response.json()["code"] == "checkNumberOutOfRange"

        response = await issue(client, auth_headers, checkbook, "10a")
        assert response.status_code == 400
        assert response.json()["code"] == "invalidCheckNumber"

    @pytest.mark.asyncio
    async def test_persian_digits_are_normalised(self, client: AsyncClient, auth_headers, checkbook):
        response = await issue(client, auth_headers, checkbook, "۱۰۰۰")
        assert response.status_code == 201
        assert response.json()["item"]["number"] == "1000"

        response = await issue(client, auth_headers, checkbook, "1000")
        assert response.status_code == 409
        assert response.json()["code"] == "duplicateCheckNumber"

    @pytest.mark.asyncio
    async def test_last_issued_number(self, client: AsyncClient, auth_headers, checkbook):
        url = f"/api/v1/treasury/checkbooks/{checkbook['id']}/last-issued-number"

        response = await client.get(url, headers=auth_headers)
        assert response.json()["data"] == {
            "last_issued_number": None,
            "next_suggestion": 1000,
            "range": {"start": 1000, "end": 1009},
        }

        await issue(client, auth_headers, checkbook, "1004")
        response = await client.get(url, headers=auth_headers)
        assert response.json()["data"]["last_issued_number"] == 1004
        assert response.json()["data"]["next_suggestion"] == 1005

        await issue(client, auth_headers, checkbook, "1009")
        response = await client.get(url, headers=auth_headers)
        assert response.json()["data"]["next_suggestion"] is None

    @pytest.mark.asyncio
    async def test_checkbook_with_checks_cannot_be_deleted(self, client: AsyncClient, auth_headers, checkbook):
        await issue(client, auth_headers, checkbook, "1001")
        response = await client.delete(f"/api/v1/treasury/checkbooks/{checkbook['id']}", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "checkbookHasChecks"

    @pytest.mark.asyncio
    async def test_checkbook_checks_listing(self, client: AsyncClient, auth_headers, checkbook):
        for number in ("1003", "1001", "1002"):
            await issue(client, auth_headers, checkbook, number)
        response = await client.get(f"/api/v1/treasury/checkbooks/{checkbook['id']}/checks", headers=auth_headers)
        assert [check["number"] for check in response.json()["items"]] == ["1001", "1002", "1003"]


class TestChecks:

    @pytest.mark.asyncio
    async def test_incoming_check_needs_positive_amount(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/treasury/checks",
            json={"number": "1", "amount": "0", "issue_date": "2026-01-10"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidCheckAmount"

    @pytest.mark.asyncio
    async def test_inactive_beneficiary_rejected(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/details",
            json={"code": "0042", "title": "Dormant supplier", "is_active": False},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        detail_id = response.json()["item"]["id"]

        response = await client.post(
            "/api/v1/treasury/checks",
            json={"number": "9", "amount": "5", "issue_date": "2026-01-10", "beneficiary_detail_id": detail_id},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "beneficiaryInactive"

    @pytest.mark.asyncio
    async def test_listing_by_type(self, client: AsyncClient, auth_headers, checkbook):
        await issue(client, auth_headers, checkbook, "1000")
        await client.post(
            "/api/v1/treasury/checks",
            json={"number": "88", "amount": "5", "issue_date": "2026-01-10"},
            headers=auth_headers,
        )

        response = await client.get("/api/v1/treasury/checks", headers=auth_headers)
        assert [check["number"] for check in response.json()["items"]] == ["88"]

        response = await client.get("/api/v1/treasury/checks", params={"type": "outgoing"}, headers=auth_headers)
        assert [check["number"] for check in response.json()["items"]] == ["1000"]

    @pytest.mark.asyncio
    async def test_spent_checks_cannot_be_deleted(self, client: AsyncClient, auth_headers, fiscal_year, checkbook):
        check = (await issue(client, auth_headers, checkbook, "1000", amount="25")).json()["item"]
        response = await client.post(
            "/api/v1/treasury/payments",
            json={
                "date": "2026-02-10",
                "fiscal_year_id": str(fiscal_year.id),
                "total_amount": "25",
                "items": [{"instrument": {"type": "check", "check_id": check["id"]}, "amount": "25"}],
            },
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text

        response = await client.delete(f"/api/v1/treasury/checks/{check['id']}", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "cannotDeleteCheck"

    @pytest.mark.asyncio
    async def test_issued_check_can_be_deleted(self, client: AsyncClient, auth_headers, checkbook):
        check = (await issue(client, auth_headers, checkbook, "1000")).json()["item"]
        response = await client.delete(f"/api/v1/treasury/checks/{check['id']}", headers=auth_headers)
        assert response.status_code == 200

        response = await client.get(f"/api/v1/treasury/checks/{check['id']}", headers=auth_headers)
        assert response.status_code == 404
