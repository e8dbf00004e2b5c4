"""
Ledgerline - Account Taxonomy Tests

Codes, details and detail levels through the API.
"""

import pytest
from httpx import AsyncClient


class TestCodes:
    """Chart of accounts hierarchy rules."""

    @pytest.mark.asyncio
    async def test_create_group_general_specific_chain(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/codes",
            json={"code": "31", "title": "Equity", "kind": "group", "nature": "credit"},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        group = response.json()["item"]
        assert group["kind"] == "group"
        assert group["nature"] == "credit"

        response = await client.post(
            "/api/v1/codes",
            json={"code": "3101", "title": "Capital", "kind": "GENERAL", "parent_id": group["id"]},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        general = response.json()["item"]

        response = await client.post(
            "/api/v1/codes",
            json={"code": "310101", "title": "Paid-in capital", "kind": "specific", "parent_id": general["id"]},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        assert response.json()["item"]["parent_id"] == general["id"]

    @pytest.mark.asyncio
    async def test_group_code_must_be_two_digits(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/codes",
            json={"code": "310", "title": "Equity", "kind": "group"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "groupCodeWidth"

    @pytest.mark.asyncio
    async def test_invalid_kind_rejected(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/codes",
            json={"code": "31", "title": "Equity", "kind": "ledger"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidKind"

    @pytest.mark.asyncio
    async def test_unknown_nature_is_stored_as_null(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/codes",
            json={"code": "41", "title": "Revenue", "kind": "group", "nature": "sideways"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["item"]["nature"] is None

    @pytest.mark.asyncio
    async def test_specific_requires_general_parent(self, client: AsyncClient, auth_headers, codes):
        response = await client.post(
            "/api/v1/codes",
            json={"code": "119999", "title": "Misplaced", "kind": "specific", "parent_id": str(codes["assets"].id)},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidParent"

    @pytest.mark.asyncio
    async def test_group_cannot_have_parent(self, client: AsyncClient, auth_headers, codes):
        response = await client.post(
            "/api/v1/codes",
            json={"code": "51", "title": "Costs", "kind": "group", "parent_id": str(codes["assets"].id)},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidParent"

    @pytest.mark.asyncio
    async def test_duplicate_code_conflict(self, client: AsyncClient, auth_headers, codes):
        response = await client.post(
            "/api/v1/codes",
            json={"code": "11", "title": "Again", "kind": "group"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "duplicateCode"
        assert "11" in body["message"]

    @pytest.mark.asyncio
    async def test_update_validates_post_update_state(self, client: AsyncClient, auth_headers, codes):
        # Turning a general code into a group while it keeps its parent is invalid.
        response = await client.patch(
            f"/api/v1/codes/{codes['cash_banks'].id}",
            json={"kind": "group", "code": "12"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidParent"

        response = await client.patch(
            f"/api/v1/codes/{codes['cash_banks'].id}",
            json={"title": "Cash & banks"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["item"]["title"] == "Cash & banks"

    @pytest.mark.asyncio
    async def test_delete_code_with_children_conflicts(self, client: AsyncClient, auth_headers, codes):
        response = await client.delete(f"/api/v1/codes/{codes['assets'].id}", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "hasChildren"

    @pytest.mark.asyncio
    async def test_delete_leaf_code(self, client: AsyncClient, auth_headers, codes):
        response = await client.delete(f"/api/v1/codes/{codes['customers'].id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["id"] == str(codes["customers"].id)

        response = await client.get(f"/api/v1/codes/{codes['customers'].id}", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_code_used_by_journal_conflicts(self, client: AsyncClient, auth_headers, codes, fiscal_year):
        response = await client.post(
            "/api/v1/journals",
            json={
                "fiscal_year_id": str(fiscal_year.id),
                "date": "2026-02-01",
                "items": [
                    {"code_id": str(codes["cash"].id), "debit": "10"},
                    {"code_id": str(codes["customers"].id), "credit": "10"},
                ],
            },
            headers=auth_headers,
        )
        assert response.status_code == 201

        response = await client.delete(f"/api/v1/codes/{codes['customers'].id}", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "codeInUse"

    @pytest.mark.asyncio
    async def test_code_tree(self, client: AsyncClient, auth_headers, codes):
        response = await client.get("/api/v1/codes/tree", headers=auth_headers)
        assert response.status_code == 200
        roots = response.json()["data"]
        assert [root["code"] for root in roots] == ["11", "21"]
        assets = roots[0]
        assert [child["code"] for child in assets["children"]] == ["1101", "1102"]
        assert [leaf["code"] for leaf in assets["children"][0]["children"]] == ["110101", "110102", "110103"]

    @pytest.mark.asyncio
    async def test_list_codes_filtered_by_kind(self, client: AsyncClient, auth_headers, codes):
        response = await client.get("/api/v1/codes", params={"kind": "general"}, headers=auth_headers)
        assert response.status_code == 200
        assert [item["code"] for item in response.json()["items"]] == ["1101", "1102", "2101"]


class TestDetailLevels:
    """Detail-level tree."""

    async def _create_level(self, client, auth_headers, code, parent_id=None, **extra):
        payload = {"code": code, "title": f"Level {code}", "parent_id": parent_id, **extra}
        response = await client.post("/api/v1/detail-levels", json=payload, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()["item"]

    @pytest.mark.asyncio
    async def test_tree_and_children(self, client: AsyncClient, auth_headers):
        root = await self._create_level(client, auth_headers, "P")
        await self._create_level(client, auth_headers, "P1", parent_id=root["id"])
        await self._create_level(client, auth_headers, "P2", parent_id=root["id"])

        response = await client.get("/api/v1/detail-levels/tree", headers=auth_headers)
        tree = response.json()["data"]
        assert len(tree) == 1
        assert [child["code"] for child in tree[0]["children"]] == ["P1", "P2"]

        response = await client.get(
            "/api/v1/detail-levels/children", params={"parent_id": root["id"]}, headers=auth_headers,
        )
        assert [level["code"] for level in response.json()["items"]] == ["P1", "P2"]

        response = await client.get("/api/v1/detail-levels/children", headers=auth_headers)
        assert [level["code"] for level in response.json()["items"]] == ["P"]

    @pytest.mark.asyncio
    async def test_reparent_under_descendant_is_cycle(self, client: AsyncClient, auth_headers):
        root = await self._create_level(client, auth_headers, "A")
        child = await self._create_level(client, auth_headers, "A1", parent_id=root["id"])
        grandchild = await self._create_level(client, auth_headers, "A11", parent_id=child["id"])

        response = await client.patch(
            f"/api/v1/detail-levels/{root['id']}",
            json={"parent_id": grandchild["id"]},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "cycle"

        response = await client.patch(
            f"/api/v1/detail-levels/{root['id']}",
            json={"parent_id": root["id"]},
            headers=auth_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_only_specific_codes_attach(self, client: AsyncClient, auth_headers, codes):
        response = await client.post(
            "/api/v1/detail-levels",
            json={"code": "C", "title": "Customers", "specific_code_ids": [str(codes["cash_banks"].id)]},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "specificRequired"

        level = await self._create_level(
            client, auth_headers, "C", specific_code_ids=[str(codes["customers"].id)],
        )
        assert level["specific_code_ids"] == [str(codes["customers"].id)]

    @pytest.mark.asyncio
    async def test_delete_level_with_children_conflicts(self, client: AsyncClient, auth_headers):
        root = await self._create_level(client, auth_headers, "R")
        await self._create_level(client, auth_headers, "R1", parent_id=root["id"])

        response = await client.delete(f"/api/v1/detail-levels/{root['id']}", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "hasChildren"


class TestDetails:
    """Four-digit details and their level links."""

    @pytest.mark.asyncio
    async def test_detail_code_must_be_four_digits(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/details", json={"code": "123", "title": "Short"}, headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalidWidth"

    @pytest.mark.asyncio
    async def test_suggest_next_fills_gaps(self, client: AsyncClient, auth_headers):
        for code in ("0001", "0002", "0004"):
            response = await client.post(
                "/api/v1/details", json={"code": code, "title": f"Detail {code}"}, headers=auth_headers,
            )
            assert response.status_code == 201

        response = await client.get("/api/v1/details/suggest-next", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["code"] == "0003"

    @pytest.mark.asyncio
    async def test_duplicate_detail_code(self, client: AsyncClient, auth_headers):
        payload = {"code": "0100", "title": "Acme"}
        assert (await client.post("/api/v1/details", json=payload, headers=auth_headers)).status_code == 201
        response = await client.post("/api/v1/details", json=payload, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "duplicateCode"

    @pytest.mark.asyncio
    async def test_links_only_to_leaf_levels(self, client: AsyncClient, auth_headers):
        parent = (await client.post(
            "/api/v1/detail-levels", json={"code": "PARTY", "title": "Parties"}, headers=auth_headers,
        )).json()["item"]
        leaf = (await client.post(
            "/api/v1/detail-levels",
            json={"code": "PARTY-C", "title": "Customers", "parent_id": parent["id"]},
            headers=auth_headers,
        )).json()["item"]

        response = await client.post(
            "/api/v1/details",
            json={"code": "0200", "title": "Acme", "detail_level_ids": [parent["id"]]},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "linkMustBeLeaf"

        response = await client.post(
            "/api/v1/details",
            json={
                "code": "0200",
                "title": "Acme",
                "detail_levels": [{"id": leaf["id"], "is_primary": True, "position": 1}],
                "detail_level_ids": [leaf["id"]],
            },
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        detail = response.json()["item"]
        assert detail["detail_levels"] == [
            {"detail_level_id": leaf["id"], "is_primary": True, "position": 1},
        ]

        response = await client.get(f"/api/v1/details/{detail['id']}/detail-levels", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["items"][0]["code"] == "PARTY-C"

        # A linked detail cannot be deleted.
        response = await client.delete(f"/api/v1/details/{detail['id']}", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "linkedExists"

        # Sending an empty link list removes the links.
        response = await client.patch(
            f"/api/v1/details/{detail['id']}", json={"detail_level_ids": []}, headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["item"]["detail_levels"] == []

        response = await client.delete(f"/api/v1/details/{detail['id']}", headers=auth_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_system_managed_details_are_read_only(self, client: AsyncClient, auth_headers, cashbox):
        handler_id = cashbox["handler_detail_id"]

        response = await client.patch(
            f"/api/v1/details/{handler_id}", json={"title": "Renamed"}, headers=auth_headers,
        )
        assert response.status_code == 403
        assert response.json()["code"] == "systemManagedCannotEdit"

        response = await client.delete(f"/api/v1/details/{handler_id}", headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "systemManagedCannotDelete"
