"""
API Integration Tests
End-to-end testing of API endpoints with real HTTP requests
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inventory_mrp.core.context import OrgContext
from inventory_mrp.services.inventory import StockMovementService
from tests.conftest import InventoryTestHelper, APITestHelper, OTHER_ORG_ID

API = "/api/v1"


class TestSystemAPI:
    """System endpoints"""

    def test_health_check(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ["healthy", "degraded"]
        assert "version" in data

    def test_system_info(self, client: TestClient):
        response = client.get("/info")

        assert response.status_code == 200
        data = response.json()
        assert "features" in data
        assert data["mrp"]["max_depth"] == 25

    def test_organization_header_required(self, client: TestClient):
        response = client.get(f"{API}/inventory/alerts")

        assert response.status_code == 400


class TestInventoryAPI:
    """Movement, lot and alert endpoints"""

    def test_receive_and_consume(self, client: TestClient, org_headers: dict,
                                 db_session: Session, org: OrgContext):
        material = InventoryTestHelper.create_material(db_session, org, "LDPE", "LDPE film grade")

        response = client.post(f"{API}/inventory/movements", headers=org_headers, json={
            "material_id": material.id, "type": "IN", "quantity": "25",
            "lot_number": "LD-1", "supplier": "Braskem", "expiration_date": "2027-01-31"
        })
        APITestHelper.assert_success_response(response, ["lot", "transactions", "current_stock"])
        assert response.status_code == 201
        assert response.json()["lot"]["lot_number"] == "LD-1"
        assert Decimal(response.json()["current_stock"]) == Decimal("25")

        response = client.post(f"{API}/inventory/movements", headers=org_headers, json={
            "material_id": material.id, "type": "OUT_LOSS", "quantity": "4"
        })
        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["current_stock"]) == Decimal("21")
        assert [c["lot_number"] for c in data["consumptions"]] == ["LD-1"]
        assert data["transactions"][0]["operator_id"] == "operator-1"

    def test_insufficient_stock(self, client: TestClient, org_headers: dict, resin):
        response = client.post(f"{API}/inventory/movements", headers=org_headers, json={
            "material_id": resin.id, "type": "OUT_PROD", "quantity": "500"
        })

        APITestHelper.assert_error_response(response, 409, "insufficient_stock")
        assert Decimal(response.json()["current_stock"]) == Decimal("80")

    def test_invalid_quantity(self, client: TestClient, org_headers: dict, resin):
        response = client.post(f"{API}/inventory/movements", headers=org_headers, json={
            "material_id": resin.id, "type": "OUT_PROD", "quantity": "0"
        })

        APITestHelper.assert_error_response(response, 422, "invalid_quantity")

    def test_missing_lot_number(self, client: TestClient, org_headers: dict, resin):
        response = client.post(f"{API}/inventory/movements", headers=org_headers, json={
            "material_id": resin.id, "type": "IN", "quantity": "10", "lot_number": "  "
        })

        APITestHelper.assert_error_response(response, 422, "missing_lot_number")

    def test_material_of_other_organization(self, client: TestClient, resin):
        response = client.post(f"{API}/inventory/movements",
                               headers={"X-Organization-Id": OTHER_ORG_ID}, json={
            "material_id": resin.id, "type": "OUT_PROD", "quantity": "1"
        })

        APITestHelper.assert_error_response(response, 404, "material_not_found")

    def test_lots_transactions_and_reconciliation(self, client: TestClient, org_headers: dict, resin):
        lots = client.get(f"{API}/inventory/materials/{resin.id}/lots", headers=org_headers)
        transactions = client.get(f"{API}/inventory/materials/{resin.id}/transactions",
                                  headers=org_headers)
        reconciliation = client.get(f"{API}/inventory/materials/{resin.id}/reconciliation",
                                    headers=org_headers)

        assert [lot["lot_number"] for lot in lots.json()] == ["L1", "L2"]
        assert len(transactions.json()) == 2
        data = reconciliation.json()
        assert data["consistent"] is True
        assert Decimal(data["ledger_balance"]) == Decimal("80")

    def test_get_material(self, client: TestClient, org_headers: dict, resin):
        response = client.get(f"{API}/inventory/materials/{resin.id}", headers=org_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["code"] == "RES-A"
        assert Decimal(data["current_stock"]) == Decimal("80")

    def test_block_lot(self, client: TestClient, org_headers: dict, resin):
        lot_id = client.get(f"{API}/inventory/materials/{resin.id}/lots",
                            headers=org_headers).json()[0]["id"]

        response = client.patch(f"{API}/inventory/lots/{lot_id}/status", headers=org_headers,
                                json={"status": "BLOCKED"})

        assert response.status_code == 200
        assert response.json()["status"] == "BLOCKED"

    def test_alerts_list_and_resolve(self, client: TestClient, org_headers: dict,
                                     db_session: Session, org: OrgContext):
        material = InventoryTestHelper.create_material(db_session, org, "CAP-28", "Cap 28mm",
                                                       min_stock="100", unit="UN")
        InventoryTestHelper.receive(StockMovementService(db_session, org), material, "60", "CP-1")

        alerts = client.get(f"{API}/inventory/alerts", headers=org_headers).json()
        assert len(alerts) == 1
        assert alerts[0]["material_id"] == material.id

        response = client.post(f"{API}/inventory/alerts/{alerts[0]['id']}/resolve", headers=org_headers)
        assert response.status_code == 200
        assert response.json()["is_resolved"] is True
        assert client.get(f"{API}/inventory/alerts", headers=org_headers).json() == []

    def test_resolve_unknown_alert(self, client: TestClient, org_headers: dict):
        response = client.post(f"{API}/inventory/alerts/999/resolve", headers=org_headers)

        APITestHelper.assert_error_response(response, 404, "alert_not_found")


class TestMRPAPI:
    """Simulation and kitting endpoints"""

    def test_simulate_by_code(self, client: TestClient, org_headers: dict, product_p):
        response = client.post(f"{API}/mrp/simulate", headers=org_headers,
                               json={"product_code": "P", "quantity": "10"})

        assert response.status_code == 200
        plan = response.json()
        assert plan["action"] == "PRODUCE"
        child = plan["children"][0]
        assert child["product_code"] == "M"
        assert child["action"] == "BUY"
        assert Decimal(child["net_requirement"]) == Decimal("15")
        assert plan["lead_time"] == 8

    def test_simulate_unknown_product(self, client: TestClient, org_headers: dict):
        response = client.post(f"{API}/mrp/simulate", headers=org_headers,
                               json={"product_code": "NOPE", "quantity": "1"})

        APITestHelper.assert_error_response(response, 404, "product_not_found")

    def test_simulate_requires_product(self, client: TestClient, org_headers: dict):
        response = client.post(f"{API}/mrp/simulate", headers=org_headers, json={"quantity": "1"})

        assert response.status_code == 422

    def test_buildable(self, client: TestClient, org_headers: dict, product_p):
        product, material = product_p

        response = client.get(f"{API}/mrp/products/{product.id}/buildable", headers=org_headers)

        assert response.status_code == 200
        assert response.json()["buildable_quantity"] == 2
        assert response.json()["limiting_material_id"] == material.id


class TestProductionAPI:
    """Production order lifecycle over HTTP"""

    def test_order_lifecycle(self, client: TestClient, org_headers: dict, product_p):
        product, material = product_p

        response = client.post(f"{API}/production-orders", headers=org_headers, json={
            "product_id": product.id, "target_quantity": "2", "customer_name": "Embalagens Sul"
        })
        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "PLANNED"
        assert order["order_number"].startswith("OP-")

        reservations = client.get(f"{API}/production-orders/{order['id']}/reservations",
                                  headers=org_headers).json()
        assert [(r["material_id"], Decimal(r["quantity"])) for r in reservations] == [
            (material.id, Decimal("4"))
        ]

        response = client.post(f"{API}/production-orders/{order['id']}/status",
                               headers=org_headers, json={"status": "IN_PROGRESS"})
        assert response.status_code == 200
        assert response.json()["status"] == "IN_PROGRESS"

        response = client.post(f"{API}/production-orders/{order['id']}/status",
                               headers=org_headers, json={"status": "PLANNED"})
        APITestHelper.assert_error_response(response, 409, "invalid_status_transition")

        history = client.get(f"{API}/production-orders/{order['id']}/history", headers=org_headers).json()
        assert [(h["previous_status"], h["new_status"]) for h in history] == [("PLANNED", "IN_PROGRESS")]

        transactions = client.get(f"{API}/inventory/materials/{material.id}/transactions",
                                  headers=org_headers).json()
        assert transactions[0]["related_entry_id"] == order["order_number"]

    def test_order_without_bom(self, client: TestClient, org_headers: dict,
                               db_session: Session, org: OrgContext):
        product = InventoryTestHelper.create_product(db_session, org, "LID", "Lid")

        response = client.post(f"{API}/production-orders", headers=org_headers,
                               json={"product_id": product.id, "target_quantity": "1"})

        APITestHelper.assert_error_response(response, 404, "bom_not_found")

    def test_unknown_order(self, client: TestClient, org_headers: dict):
        response = client.get(f"{API}/production-orders/4242", headers=org_headers)

        APITestHelper.assert_error_response(response, 404, "order_not_found")

    def test_production_entry(self, client: TestClient, org_headers: dict, product_p):
        product, material = product_p
        entry = {"product_id": product.id, "quantity_produced": "2", "production_entry_id": "PE-77"}

        response = client.post(f"{API}/production-entries", headers=org_headers, json=entry)
        assert response.status_code == 201
        consumed = response.json()["consumed"]
        assert consumed[0]["material_id"] == material.id
        assert Decimal(consumed[0]["current_stock"]) == Decimal("1")

        response = client.post(f"{API}/production-entries", headers=org_headers, json=entry)
        APITestHelper.assert_error_response(response, 409, "duplicate_entry")
