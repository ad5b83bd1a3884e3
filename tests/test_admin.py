"""Admin API tests: shipping rules, packaging catalog, system flags."""

import pytest
from httpx import AsyncClient

RULES_URL = "/api/admin/shipping-rules/"
BOXES_URL = "/api/admin/packaging-boxes/"
CONFIG_URL = "/api/admin/config/"

SMALL_BOX = {
    "code": "p1", "name": "Caixa P",
    "inner_length": 20, "inner_width": 15, "inner_height": 10,
    "outer_length": 22, "outer_width": 17, "outer_height": 12,
    "max_weight": 5, "empty_weight": 0.2,
}


@pytest.mark.asyncio
async def test_admin_requires_token(client: AsyncClient):
    resp = await client.get(RULES_URL)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_storefront_key_is_not_admin(client: AsyncClient, api_headers):
    resp = await client.get(BOXES_URL, headers=api_headers)
    assert resp.status_code == 401


class TestShippingRules:
    @pytest.mark.asyncio
    async def test_crud(self, client: AsyncClient, admin_headers):
        resp = await client.post(RULES_URL, json={
            "name": "Sudeste", "priority": 10, "region_type": "STATE",
            "regions": ["SP", "RJ"], "shipping_cost": "12.90", "delivery_days": 4,
        }, headers=admin_headers)
        assert resp.status_code == 201
        rule = resp.json()
        assert rule["regions"] == '["SP", "RJ"]'
        assert rule["region_type"] == "STATE"

        resp = await client.patch(f"{RULES_URL}{rule['id']}", json={"regions": ["MG"], "is_active": False},
                                  headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["regions"] == '["MG"]'
        assert resp.json()["is_active"] is False

        resp = await client.get(RULES_URL, params={"active": "false"}, headers=admin_headers)
        assert [r["name"] for r in resp.json()] == ["Sudeste"]

        resp = await client.delete(f"{RULES_URL}{rule['id']}", headers=admin_headers)
        assert resp.status_code == 204
        resp = await client.get(f"{RULES_URL}{rule['id']}", headers=admin_headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_listed_by_priority(self, client: AsyncClient, admin_headers):
        for name, priority in [("Low", 1), ("High", 9), ("Mid", 5)]:
            await client.post(RULES_URL, json={"name": name, "priority": priority}, headers=admin_headers)
        resp = await client.get(RULES_URL, headers=admin_headers)
        assert [r["name"] for r in resp.json()] == ["High", "Mid", "Low"]

    @pytest.mark.asyncio
    async def test_null_keeps_required_fields(self, client: AsyncClient, admin_headers):
        rule = (await client.post(RULES_URL, json={
            "name": "Brasil", "shipping_cost": "15", "free_shipping_min": "150",
        }, headers=admin_headers)).json()

        resp = await client.patch(f"{RULES_URL}{rule['id']}", json={
            "name": None, "shipping_cost": None, "free_shipping_min": None,
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Brasil"
        assert resp.json()["shipping_cost"] == rule["shipping_cost"]
        assert resp.json()["free_shipping_min"] is None

    @pytest.mark.asyncio
    async def test_unknown_region_type_rejected(self, client: AsyncClient, admin_headers):
        resp = await client.post(RULES_URL, json={"name": "X", "region_type": "COUNTRY"}, headers=admin_headers)
        assert resp.status_code == 422


class TestPackagingBoxes:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client: AsyncClient, admin_headers):
        resp = await client.post(BOXES_URL, json=SMALL_BOX, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json()["code"] == "P1"

        resp = await client.get(BOXES_URL, headers=admin_headers)
        assert [b["code"] for b in resp.json()] == ["P1"]

    @pytest.mark.asyncio
    async def test_duplicate_code(self, client: AsyncClient, admin_headers):
        await client.post(BOXES_URL, json=SMALL_BOX, headers=admin_headers)
        resp = await client.post(BOXES_URL, json={**SMALL_BOX, "code": "P1"}, headers=admin_headers)
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_inner_larger_than_outer(self, client: AsyncClient, admin_headers):
        resp = await client.post(BOXES_URL, json={**SMALL_BOX, "inner_length": 30}, headers=admin_headers)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client: AsyncClient, admin_headers):
        box_id = (await client.post(BOXES_URL, json=SMALL_BOX, headers=admin_headers)).json()["id"]
        resp = await client.patch(f"{BOXES_URL}{box_id}", json={"max_weight": 8}, headers=admin_headers)
        assert resp.json()["max_weight"] == 8
        assert (await client.delete(f"{BOXES_URL}{box_id}", headers=admin_headers)).status_code == 204
        assert (await client.delete(f"{BOXES_URL}{box_id}", headers=admin_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_update_ignores_nulls(self, client: AsyncClient, admin_headers):
        box_id = (await client.post(BOXES_URL, json=SMALL_BOX, headers=admin_headers)).json()["id"]
        resp = await client.patch(f"{BOXES_URL}{box_id}", json={"name": None, "inner_length": None},
                                  headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Caixa P"
        assert resp.json()["inner_length"] == 20

    @pytest.mark.asyncio
    async def test_registered_box_used_in_quote(self, client: AsyncClient, admin_headers, api_headers):
        await client.post(BOXES_URL, json=SMALL_BOX, headers=admin_headers)
        resp = await client.post("/api/shipping/quote", json={
            "cep": "01310100", "cartValue": 50, "items": [{"id": "unknown"}],
        }, headers=api_headers)
        assert resp.json()["packaging"]["code"] == "P1"


class TestSystemConfig:
    @pytest.mark.asyncio
    async def test_upsert_and_filter(self, client: AsyncClient, admin_headers):
        await client.put(CONFIG_URL, json={"key": "correios.enabled", "value": "false"}, headers=admin_headers)
        resp = await client.put(CONFIG_URL, json={"key": "correios.enabled", "value": "true"},
                                headers=admin_headers)
        assert resp.json()["value"] == "true"

        resp = await client.get(CONFIG_URL, params={"prefix": "correios."}, headers=admin_headers)
        assert [(c["key"], c["value"]) for c in resp.json()] == [("correios.enabled", "true")]

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, admin_headers):
        await client.put(CONFIG_URL, json={"key": "correios.services", "value": "PAC"}, headers=admin_headers)
        assert (await client.delete(f"{CONFIG_URL}correios.services", headers=admin_headers)).status_code == 204
        assert (await client.delete(f"{CONFIG_URL}correios.services", headers=admin_headers)).status_code == 404
