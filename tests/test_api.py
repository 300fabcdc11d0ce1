"""
HTTP surface tests: authentication, role checks, error envelope and the main flows.
"""

from __future__ import annotations

import re

import pytest

API = "/api/v1"
PR_NUMBER = re.compile(r"^PR-\d{4}-\d{6}$")


@pytest.fixture
def buyer_headers(auth_headers):
    return auth_headers("buyer-1", "procurement:manage")


@pytest.fixture
def approver_headers(auth_headers):
    return auth_headers("approver-1", "procurement:approve")


@pytest.fixture
def viewer_headers(auth_headers):
    return auth_headers("viewer-1", "procurement:view")


@pytest.fixture
async def kit(catalog):
    kit = await catalog.item("KIT", is_assembly=True, family="Residential")
    panel = await catalog.item("PANEL", on_hand=10)
    inverter = await catalog.item("INV", on_hand=3)
    await catalog.bom(kit, panel, 2)
    await catalog.bom(kit, inverter, 1)
    return kit


@pytest.fixture
async def order(catalog):
    clamp = await catalog.item("CLAMP", on_hand=0)
    rail = await catalog.item("RAIL", on_hand=20)
    return await catalog.sales_order("SO-0001", [(clamp, 16), (rail, 8)])


async def recalculate(api_client, order, headers) -> dict:
    resp = await api_client.post(f"{API}/stock-requirements/sales-orders/{order.id}/recalculate", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


async def create_requisition(api_client, order, headers) -> dict:
    body = await recalculate(api_client, order, headers)
    short = next(r for r in body["requirements"] if r["shortfall_quantity"] > 0)
    resp = await api_client.post(f"{API}/stock-requirements/{short['id']}/generate-requisition", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


# =============================================================================
# Health, auth and envelope
# =============================================================================


class TestPlumbing:

    async def test_health(self, api_client):
        resp = await api_client.get(f"{API}/health")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Healthy"
        assert resp.headers["X-Correlation-ID"]

    async def test_missing_token(self, api_client, kit):
        resp = await api_client.get(f"{API}/catalog/assemblies/{kit.id}/buildability")
        assert resp.status_code == 401
        assert resp.json()["error"]["type"] == "http_error"

    async def test_bad_token(self, api_client, kit):
        resp = await api_client.get(
            f"{API}/catalog/assemblies/{kit.id}/buildability",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    async def test_missing_role(self, api_client, order, viewer_headers):
        resp = await api_client.post(
            f"{API}/stock-requirements/sales-orders/{order.id}/recalculate", headers=viewer_headers
        )
        assert resp.status_code == 403

    async def test_not_found_envelope(self, api_client, viewer_headers):
        resp = await api_client.get(
            f"{API}/requisitions/00000000-0000-0000-0000-000000000001",
            headers={**viewer_headers, "X-Correlation-ID": "corr-123"},
        )
        body = resp.json()
        assert resp.status_code == 404
        assert body["status"] == 404
        assert body["error"]["type"] == "not_found"
        assert body["correlation_id"] == "corr-123"
        assert body["path"].endswith("/requisitions/00000000-0000-0000-0000-000000000001")

    async def test_request_validation_envelope(self, api_client, viewer_headers):
        resp = await api_client.get(f"{API}/requisitions/not-a-uuid", headers=viewer_headers)
        assert resp.status_code == 422
        assert resp.json()["error"]["type"] == "validation_error"


# =============================================================================
# Catalog
# =============================================================================


class TestCatalogRoutes:

    async def test_tightest_component_limits_the_build(self, api_client, catalog, viewer_headers):
        assembly = await catalog.item("ASM", is_assembly=True)
        part_a = await catalog.item("A", on_hand=10)
        part_b = await catalog.item("B", on_hand=3)
        await catalog.bom(assembly, part_a, 2)
        await catalog.bom(assembly, part_b, 1)

        resp = await api_client.get(f"{API}/catalog/assemblies/{assembly.id}/buildability", headers=viewer_headers)

        body = resp.json()
        assert resp.status_code == 200, resp.text
        assert body["max_buildable"] == 3
        assert [c["sku"] for c in body["bottlenecks"]] == ["B"]
        limits = {c["sku"]: (c["can_build"], c["is_bottleneck"]) for c in body["components"]}
        assert limits == {"A": (5, False), "B": (3, True)}

    async def test_buildability(self, api_client, kit, viewer_headers):
        resp = await api_client.get(f"{API}/catalog/assemblies/{kit.id}/buildability", headers=viewer_headers)

        body = resp.json()
        assert resp.status_code == 200
        assert body["max_buildable"] == 3
        assert [c["sku"] for c in body["bottlenecks"]] == ["INV"]
        flags = {c["sku"]: c["is_bottleneck"] for c in body["components"]}
        assert flags == {"INV": True, "PANEL": False}

    async def test_explosion(self, api_client, kit, viewer_headers):
        resp = await api_client.get(
            f"{API}/catalog/items/{kit.id}/explosion", params={"quantity": 4}, headers=viewer_headers
        )

        body = resp.json()
        assert resp.status_code == 200
        shortages = {c["sku"]: c["shortage"] for c in body["children"]}
        assert shortages == {"INV": 1, "PANEL": 0}

    async def test_bom_line_cycle_is_unprocessable(self, api_client, catalog, kit, buyer_headers):
        panel_resp = await api_client.get(
            f"{API}/catalog/assemblies/{kit.id}/buildability", headers=buyer_headers
        )
        panel_id = next(c["component_id"] for c in panel_resp.json()["components"] if c["sku"] == "PANEL")

        resp = await api_client.post(
            f"{API}/catalog/bom-lines",
            json={"parent_item_id": panel_id, "component_item_id": str(kit.id), "qty_per": 1},
            headers=buyer_headers,
        )

        assert resp.status_code == 422
        assert resp.json()["error"]["type"] == "bom_cycle"

    async def test_bom_line_create(self, api_client, catalog, kit, buyer_headers):
        cable = await catalog.item("CABLE", on_hand=5)

        resp = await api_client.post(
            f"{API}/catalog/bom-lines",
            json={"parent_item_id": str(kit.id), "component_item_id": str(cable.id), "qty_per": 2},
            headers=buyer_headers,
        )

        assert resp.status_code == 201
        assert resp.json()["qty_per"] == 2

    async def test_bom_line_zero_quantity(self, api_client, catalog, kit, buyer_headers):
        cable = await catalog.item("CABLE", on_hand=5)

        resp = await api_client.post(
            f"{API}/catalog/bom-lines",
            json={"parent_item_id": str(kit.id), "component_item_id": str(cable.id), "qty_per": 0},
            headers=buyer_headers,
        )

        assert resp.status_code == 422
        assert resp.json()["error"]["type"] == "invalid_quantity"


# =============================================================================
# Stock requirements
# =============================================================================


class TestStockRequirementRoutes:

    async def test_recalculate(self, api_client, order, buyer_headers):
        body = await recalculate(api_client, order, buyer_headers)

        assert body["shortage_count"] == 1
        assert len(body["requirements"]) == 2

    async def test_generate_then_repeat(self, api_client, order, buyer_headers):
        first = await create_requisition(api_client, order, buyer_headers)
        assert first["created"] is True
        assert PR_NUMBER.match(first["number"])
        assert first["urgency"] == "critical"
        assert first["quantity"] == 16

        again = await api_client.post(
            f"{API}/stock-requirements/{first['requirement_id']}/generate-requisition", headers=buyer_headers
        )
        assert again.status_code == 200
        assert again.json()["created"] is False
        assert again.json()["number"] == first["number"]

    async def test_generate_strict_conflict(self, api_client, order, buyer_headers):
        first = await create_requisition(api_client, order, buyer_headers)

        resp = await api_client.post(
            f"{API}/stock-requirements/{first['requirement_id']}/generate-requisition",
            params={"fail_if_open": "true"},
            headers=buyer_headers,
        )

        assert resp.status_code == 409
        assert resp.json()["error"]["type"] == "already_exists"

    async def test_list_and_summary(self, api_client, order, buyer_headers, viewer_headers):
        await create_requisition(api_client, order, buyer_headers)

        listing = await api_client.get(
            f"{API}/stock-requirements", params={"sales_order_id": str(order.id)}, headers=viewer_headers
        )
        summary = await api_client.get(f"{API}/stock-requirements/summary", headers=viewer_headers)

        rows = listing.json()
        assert [r["status"] for r in rows] == ["critical", "sufficient"]
        assert [r["has_open_requisition"] for r in rows] == [True, False]
        assert summary.json() == {
            "total": 2,
            "critical": 1,
            "shortage": 0,
            "sufficient": 1,
            "total_shortfall_units": 16,
        }

    async def test_batch(self, api_client, order, buyer_headers):
        await recalculate(api_client, order, buyer_headers)

        resp = await api_client.post(
            f"{API}/stock-requirements/sales-orders/{order.id}/batch-generate", headers=buyer_headers
        )

        body = resp.json()
        assert resp.status_code == 200
        assert len(body["success"]) == 1
        assert body["failed"] == []


# =============================================================================
# Requisitions
# =============================================================================


class TestRequisitionRoutes:

    async def test_lifecycle(self, api_client, order, buyer_headers, approver_headers, viewer_headers):
        created = await create_requisition(api_client, order, buyer_headers)
        url = f"{API}/requisitions/{created['requisition_id']}"

        denied = await api_client.post(f"{url}/approve", headers=buyer_headers)
        assert denied.status_code == 403
        assert denied.json()["error"]["type"] == "insufficient_authority"

        approved = await api_client.post(f"{url}/approve", headers=approver_headers)
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approved_by"] == "approver-1"

        twice = await api_client.post(f"{url}/approve", headers=approver_headers)
        assert twice.status_code == 409
        assert twice.json()["error"]["type"] == "invalid_transition"

        converted = await api_client.post(
            f"{url}/convert", json={"purchase_order_ref": "PO-77"}, headers=buyer_headers
        )
        assert converted.status_code == 200
        assert converted.json()["purchase_order_ref"] == "PO-77"

        detail = await api_client.get(url, headers=viewer_headers)
        assert [e["action_type"] for e in detail.json()["audit_trail"]] == ["create", "approved", "converted"]

    async def test_reject_with_reason(self, api_client, order, buyer_headers, approver_headers):
        created = await create_requisition(api_client, order, buyer_headers)

        resp = await api_client.post(
            f"{API}/requisitions/{created['requisition_id']}/reject",
            json={"reason": "Covered by consignment stock"},
            headers=approver_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "rejected"
        assert resp.json()["rejection_reason"] == "Covered by consignment stock"

    async def test_list_with_counts(self, api_client, order, buyer_headers, viewer_headers):
        await create_requisition(api_client, order, buyer_headers)

        resp = await api_client.get(f"{API}/requisitions", headers=viewer_headers)

        body = resp.json()
        assert len(body["items"]) == 1
        assert body["counts"] == {"pending": 1}

    async def test_bom_sweep(self, api_client, kit, buyer_headers):
        resp = await api_client.post(f"{API}/requisitions/sweeps/bom", headers=buyer_headers)

        body = resp.json()
        assert resp.status_code == 200
        assert body["assemblies_scanned"] == 1
        created = {c["item_sku"]: c["quantity"] for c in body["requisitions_created"]}
        assert created == {"INV": 2}

    async def test_low_stock_sweep(self, api_client, catalog, buyer_headers):
        await catalog.item("BOLT", on_hand=5, reorder_level=40)

        resp = await api_client.post(f"{API}/requisitions/sweeps/low-stock", headers=buyer_headers)

        body = resp.json()
        assert resp.status_code == 200
        assert [(c["item_sku"], c["quantity"]) for c in body["requisitions_created"]] == [("BOLT", 35)]

    async def test_sweep_requires_manage_role(self, api_client, approver_headers):
        resp = await api_client.post(f"{API}/requisitions/sweeps/bom", headers=approver_headers)
        assert resp.status_code == 403
