"""
Ledgerline - Fiscal Year Tests

Date ranges, the single-open-year rule and the open-next rollover.
"""

import uuid

import pytest
from httpx import AsyncClient

from app.services.fiscal_year_service import FiscalYearService


async def create_year(client: AsyncClient, auth_headers, name, start, end, is_closed=True):
    response = await client.post(
        "/api/v1/fiscal-years",
        json={"name": name, "start_date": start, "end_date": end, "is_closed": is_closed},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["item"]


class TestFiscalYearCrud:

    @pytest.mark.asyncio
    async def test_new_years_start_closed(self, client: AsyncClient, auth_headers):
        year = await create_year(client, auth_headers, "FY 2025", "2025-01-01", "2025-12-31")
        assert year["is_closed"] is True

        response = await client.get("/api/v1/fiscal-years/current", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "noOpenFiscalYear"

    @pytest.mark.asyncio
    async def test_start_after_end_rejected(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/fiscal-years",
            json={"name": "Backwards", "start_date": "2025-12-31", "end_date": "2025-01-01"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidRange"

    @pytest.mark.asyncio
    async def test_overlapping_ranges_conflict(self, client: AsyncClient, auth_headers):
        await create_year(client, auth_headers, "FY 2025", "2025-01-01", "2025-12-31")
        response = await client.post(
            "/api/v1/fiscal-years",
            json={"name": "Overlap", "start_date": "2025-06-01", "end_date": "2026-05-31"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "overlappingRange"

    @pytest.mark.asyncio
    async def test_list_is_newest_first_with_document_flag(
        self, client: AsyncClient, auth_headers, codes, fiscal_year,
    ):
        await create_year(client, auth_headers, "FY 2025", "2025-01-01", "2025-12-31")
        response = await client.post(
            "/api/v1/journals/auto",
            json={
                "fiscal_year_id": str(fiscal_year.id),
                "date": "2026-03-01",
                "amount": "25",
                "debit_code_id": str(codes["cash"].id),
                "credit_code_id": str(codes["customers"].id),
            },
            headers=auth_headers,
        )
        assert response.status_code == 201

        response = await client.get("/api/v1/fiscal-years", headers=auth_headers)
        items = response.json()["items"]
        assert [item["name"] for item in items] == ["FY 2026", "FY 2025"]
        assert [item["has_documents"] for item in items] == [True, False]

    @pytest.mark.asyncio
    async def test_dates_frozen_once_documents_exist(self, client: AsyncClient, auth_headers, codes, fiscal_year):
        response = await client.post(
            "/api/v1/journals/auto",
            json={
                "fiscal_year_id": str(fiscal_year.id),
                "date": "2026-03-01",
                "amount": "25",
                "debit_code_id": str(codes["cash"].id),
                "credit_code_id": str(codes["customers"].id),
            },
            headers=auth_headers,
        )
        assert response.status_code == 201

        response = await client.patch(
            f"/api/v1/fiscal-years/{fiscal_year.id}",
            json={"end_date": "2026-06-30"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "cannotEditDatesWithDocuments"

        # Renaming is still allowed.
        response = await client.patch(
            f"/api/v1/fiscal-years/{fiscal_year.id}",
            json={"name": "Fiscal 2026"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["item"]["name"] == "Fiscal 2026"

        response = await client.delete(f"/api/v1/fiscal-years/{fiscal_year.id}", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "hasDocuments"


class TestOpenClose:

    @pytest.mark.asyncio
    async def test_opening_one_year_closes_the_other(self, client: AsyncClient, auth_headers):
        year_a = await create_year(client, auth_headers, "A", "2024-01-01", "2024-12-31", is_closed=False)
        year_b = await create_year(client, auth_headers, "B", "2025-01-01", "2025-12-31")

        response = await client.post(f"/api/v1/fiscal-years/{year_b['id']}/open", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["item"]["is_closed"] is False
        assert response.json()["message"] == "Fiscal year opened"

        response = await client.get(f"/api/v1/fiscal-years/{year_a['id']}", headers=auth_headers)
        assert response.json()["item"]["is_closed"] is True

        response = await client.get("/api/v1/fiscal-years/current", headers=auth_headers)
        assert response.json()["item"]["id"] == year_b["id"]

    @pytest.mark.asyncio
    async def test_opening_open_year_is_noop(self, client: AsyncClient, auth_headers):
        year = await create_year(client, auth_headers, "A", "2024-01-01", "2024-12-31", is_closed=False)
        response = await client.post(f"/api/v1/fiscal-years/{year['id']}/open", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "The fiscal year is already open"

    @pytest.mark.asyncio
    async def test_create_open_year_closes_previous(self, client: AsyncClient, auth_headers):
        year_a = await create_year(client, auth_headers, "A", "2024-01-01", "2024-12-31", is_closed=False)
        await create_year(client, auth_headers, "B", "2025-01-01", "2025-12-31", is_closed=False)

        response = await client.get(f"/api/v1/fiscal-years/{year_a['id']}", headers=auth_headers)
        assert response.json()["item"]["is_closed"] is True

    @pytest.mark.asyncio
    async def test_open_next_requires_closed_source(self, client: AsyncClient, auth_headers):
        year = await create_year(client, auth_headers, "FY 2024", "2024-01-01", "2024-12-31", is_closed=False)
        response = await client.post(f"/api/v1/fiscal-years/{year['id']}/open-next", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "mustBeClosed"

    @pytest.mark.asyncio
    async def test_open_next_rolls_over_one_year(self, client: AsyncClient, auth_headers):
        year = await create_year(client, auth_headers, "FY 2024", "2024-01-01", "2024-12-31", is_closed=False)
        response = await client.post(f"/api/v1/fiscal-years/{year['id']}/close", headers=auth_headers)
        assert response.json()["item"]["is_closed"] is True

        response = await client.post(f"/api/v1/fiscal-years/{year['id']}/open-next", headers=auth_headers)
        assert response.status_code == 201, response.text
        following = response.json()["item"]
        assert following["start_date"] == "2025-01-01"
        assert following["end_date"] == "2025-12-31"
        assert following["is_closed"] is False
        assert following["name"] == "FY 2024 (Next)"

        # A second rollover from the same year collides with the one just made.
        response = await client.post(
            f"/api/v1/fiscal-years/{year['id']}/open-next",
            json={"name": "Again"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "nextAlreadyExists"

    @pytest.mark.asyncio
    async def test_deleting_open_year_opens_earlier_neighbour(self, client: AsyncClient, auth_headers):
        earlier = await create_year(client, auth_headers, "A", "2024-01-01", "2024-12-31")
        await create_year(client, auth_headers, "C", "2026-01-01", "2026-12-31")
        middle = await create_year(client, auth_headers, "B", "2025-01-01", "2025-12-31", is_closed=False)

        response = await client.delete(f"/api/v1/fiscal-years/{middle['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"] == {"id": middle["id"], "opened_id": earlier["id"]}

        response = await client.get("/api/v1/fiscal-years/current", headers=auth_headers)
        assert response.json()["item"]["id"] == earlier["id"]

    @pytest.mark.asyncio
    async def test_deleting_closed_year_opens_nothing(self, client: AsyncClient, auth_headers):
        year = await create_year(client, auth_headers, "A", "2024-01-01", "2024-12-31")
        response = await client.delete(f"/api/v1/fiscal-years/{year['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["opened_id"] is None

    @pytest.mark.asyncio
    async def test_seeded_year_is_current(self, client: AsyncClient, auth_headers, fiscal_year):
        response = await client.get("/api/v1/fiscal-years/current", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["item"]["id"] == str(fiscal_year.id)


class TestExclusiveOpen:

    @pytest.mark.asyncio
    async def test_open_locks_and_closes_every_other_year(
        self, client: AsyncClient, auth_headers, db_session, postgres_sql,
    ):
        await create_year(client, auth_headers, "A", "2024-01-01", "2024-12-31", is_closed=False)
        await create_year(client, auth_headers, "B", "2025-01-01", "2025-12-31")
        target = await create_year(client, auth_headers, "C", "2026-01-01", "2026-12-31")

        year, changed = await FiscalYearService(db_session).open_fiscal_year(uuid.UUID(target["id"]))
        await db_session.commit()
        assert changed is True
        assert year.is_closed is False

        locks = [sql for sql in postgres_sql if sql.startswith("SELECT") and "FOR UPDATE" in sql]
        assert any("FROM fiscal_years ORDER BY fiscal_years.id" in sql for sql in locks)

        closing = [sql for sql in postgres_sql if sql.startswith("UPDATE fiscal_years")]
        assert closing
        assert "is_closed" not in closing[0].split(" WHERE ", 1)[1]

        response = await client.get("/api/v1/fiscal-years", headers=auth_headers)
        open_names = [item["name"] for item in response.json()["items"] if not item["is_closed"]]
        assert open_names == ["C"]
