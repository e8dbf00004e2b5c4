"""
Ledgerline - API Surface Tests

Health, authentication and the shared error envelope.
"""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.utils.i18n import t
from app.utils.security import create_access_token


class TestHealthEndpoints:

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "ok"}

    @pytest.mark.asyncio
    async def test_api_info(self, client: AsyncClient):
        response = await client.get("/api")
        assert response.status_code == 200
        assert response.json()["status"] == "running"
        assert response.json()["api_prefix"] == "/api/v1"


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/codes")
        assert response.status_code == 401
        body = response.json()
        assert body["ok"] is False
        assert body["code"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/codes", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient):
        token = create_access_token({"sub": "accountant@example.com"}, expires_delta=timedelta(minutes=-5))
        response = await client.get("/api/v1/codes", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_subject(self, client: AsyncClient):
        token = create_access_token({"role": "accountant"})
        response = await client.get("/api/v1/codes", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestErrorEnvelope:

    @pytest.mark.asyncio
    async def test_not_found(self, client: AsyncClient, auth_headers):
        missing = uuid.uuid4()
        response = await client.get(f"/api/v1/journals/{missing}", headers=auth_headers)
        assert response.status_code == 404
        body = response.json()
        assert body["ok"] is False
        assert body["code"] == "notFound"
        assert body["error_code"] == "NOT_FOUND"
        assert body["message"] == "Journal not found"
        assert body["details"]["resource_id"] == str(missing)

    @pytest.mark.asyncio
    async def test_malformed_id(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/journals/not-a-uuid", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "invalidInput"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/fiscal-years",
            json={"name": "No dates"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "invalidInput"
        fields = {error["field"] for error in body["details"]["errors"]}
        assert "body.start_date" in fields

    @pytest.mark.asyncio
    async def test_language_from_query(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/v1/fiscal-years/current", params={"lang": "fa"}, headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["message"] == t("noOpenFiscalYear", "fa")

    @pytest.mark.asyncio
    async def test_language_from_header(self, client: AsyncClient, auth_headers):
        headers = {**auth_headers, "Accept-Language": "fa-IR,fa;q=0.9,en;q=0.8"}
        response = await client.get("/api/v1/fiscal-years", headers=headers)
        assert response.status_code == 200
        assert response.json()["message"] == t("ok", "fa")
