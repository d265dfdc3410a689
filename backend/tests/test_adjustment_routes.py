"""
Adjustment API tests.

Verifies the HTTP contract on top of the service:
- 401 without a token, 403 without the permission
- Field-level validation errors (400)
- Approve / reject / reverse responses, including 409 on a second review
"""

from backoffice.models import InventoryItem


def _create(client, headers, item_id, **overrides):
    body = {
        "inventory_item_id": item_id,
        "adjustment_type": "return",
        "quantity": 2,
        "reason": "defective",
        "customer_name": "Jane Doe",
    }
    body.update(overrides)
    return client.post("/api/adjustments", json=body, headers=headers)


class TestAdjustmentAuth:

    def test_requires_token(self, client, db_session):
        assert client.get("/api/adjustments").status_code == 401
        assert client.post("/api/adjustments/1/approve").status_code == 401

    def test_cashier_cannot_approve(self, client, db_session, item_a, manager_headers, cashier_headers):
        created = _create(client, cashier_headers, item_a.id)
        assert created.status_code == 201

        response = client.post(f"/api/adjustments/{created.json['adjustment']['id']}/approve",
                               headers=cashier_headers)

        assert response.status_code == 403
        assert response.json["required_permission"] == "APPROVE_ADJUSTMENTS"
        assert db_session.get(InventoryItem, item_a.id, populate_existing=True).current_stock == 10


class TestCreateRoute:

    def test_create_return(self, client, item_a, cashier_headers):
        response = _create(client, cashier_headers, item_a.id)

        assert response.status_code == 201
        adjustment = response.json["adjustment"]
        assert adjustment["status"] == "pending"
        assert adjustment["reason"] == "Defective Product"
        assert adjustment["return_to_stock"] is True
        assert adjustment["cost_impact_cents"] == 0
        assert adjustment["inventory"] == {"name": "Widget", "sku": "SKU-001"}

    def test_validation_errors_by_field(self, client, item_a, cashier_headers):
        response = client.post("/api/adjustments", json={
            "inventory_item_id": 999999,
            "adjustment_type": "damage",
            "quantity": 0,
            "customer_name": "Jane",
        }, headers=cashier_headers)

        assert response.status_code == 400
        fields = response.json["fields"]
        assert fields["inventory_item_id"] == "inventory item not found"
        assert fields["quantity"] == "must be at least 1"
        assert fields["reason"] == "is required"
        assert fields["customer_name"] == "only applies to returns"

    def test_oversized_quantity_is_a_field_error(self, client, item_a, cashier_headers):
        response = _create(client, cashier_headers, item_a.id, adjustment_type="damage",
                           quantity=10**19, customer_name=None)

        assert response.status_code == 400
        assert response.json["fields"]["quantity"] == "cannot exceed 1000000"

    def test_invalid_json(self, client, cashier_headers, db_session):
        response = client.post("/api/adjustments", data="not json",
                               content_type="application/json", headers=cashier_headers)
        assert response.status_code == 400


class TestReviewRoutes:

    def test_approve_then_conflict(self, client, item_a, cashier_headers, manager_headers):
        adj_id = _create(client, cashier_headers, item_a.id).json["adjustment"]["id"]

        response = client.post(f"/api/adjustments/{adj_id}/approve", headers=manager_headers)

        assert response.status_code == 200
        assert response.json["stock_effect"] == "restock"
        assert response.json["stock_before"] == 10
        assert response.json["stock_after"] == 12
        assert response.json["adjustment"]["status"] == "approved"
        assert "(10 -> 12)" in response.json["message"]

        again = client.post(f"/api/adjustments/{adj_id}/approve", headers=manager_headers)
        assert again.status_code == 409

        reject = client.post(f"/api/adjustments/{adj_id}/reject", headers=manager_headers)
        assert reject.status_code == 409

    def test_reject(self, client, db_session, item_a, cashier_headers, manager_headers):
        adj_id = _create(client, cashier_headers, item_a.id, adjustment_type="damage",
                         reason="water_damage", customer_name=None).json["adjustment"]["id"]

        response = client.post(f"/api/adjustments/{adj_id}/reject",
                               json={"note": "Found on shelf"}, headers=manager_headers)

        assert response.status_code == 200
        assert response.json["stock_effect"] == "none"
        assert response.json["adjustment"]["status"] == "rejected"
        assert db_session.get(InventoryItem, item_a.id, populate_existing=True).current_stock == 10

    def test_not_found(self, client, manager_headers):
        assert client.post("/api/adjustments/424242/approve", headers=manager_headers).status_code == 404
        assert client.get("/api/adjustments/424242", headers=manager_headers).status_code == 404

    def test_separation_of_duties(self, app, client, item_a, manager_headers, monkeypatch):
        monkeypatch.setitem(app.config, "ADJUSTMENT_SEPARATION_OF_DUTIES", True)
        adj_id = _create(client, manager_headers, item_a.id).json["adjustment"]["id"]

        response = client.post(f"/api/adjustments/{adj_id}/approve", headers=manager_headers)

        assert response.status_code == 403
        assert client.get(f"/api/adjustments/{adj_id}", headers=manager_headers).json["adjustment"]["status"] == "pending"

    def test_reverse(self, client, item_a, cashier_headers, manager_headers):
        adj_id = _create(client, cashier_headers, item_a.id, adjustment_type="damage",
                         reason="other", customer_name=None, quantity=3).json["adjustment"]["id"]
        client.post(f"/api/adjustments/{adj_id}/approve", headers=manager_headers)

        missing = client.post(f"/api/adjustments/{adj_id}/reverse", json={}, headers=cashier_headers)
        assert missing.status_code == 400
        assert missing.json["fields"]["reason"] == "is required"

        response = client.post(f"/api/adjustments/{adj_id}/reverse",
                               json={"reason": "Wrong item"}, headers=cashier_headers)
        assert response.status_code == 201
        reversal = response.json["adjustment"]
        assert reversal["adjustment_type"] == "reversal"
        assert reversal["status"] == "pending"
        assert reversal["reverses_adjustment_id"] == adj_id

        approved = client.post(f"/api/adjustments/{reversal['id']}/approve", headers=manager_headers)
        assert approved.json["stock_effect"] == "reversal"
        assert approved.json["stock_after"] == 10


class TestQueryRoutes:

    def test_list_filters_and_summary(self, client, item_a, cashier_headers, manager_headers):
        _create(client, cashier_headers, item_a.id)
        _create(client, cashier_headers, item_a.id, adjustment_type="loss", reason="Shelf count",
                customer_name=None, quantity=1)

        listing = client.get("/api/adjustments", headers=manager_headers)
        assert listing.status_code == 200
        assert listing.json["count"] == 2
        assert listing.json["adjustments"][0]["adjustment_type"] == "loss"

        returns = client.get("/api/adjustments?type=return", headers=manager_headers)
        assert [a["adjustment_type"] for a in returns.json["adjustments"]] == ["return"]

        search = client.get("/api/adjustments?search=jane", headers=manager_headers)
        assert search.json["count"] == 1

        summary = client.get("/api/adjustments/summary", headers=manager_headers).json["summary"]
        assert summary["total"] == 2
        assert summary["pending"] == 2
        assert summary["returns"] == 1
        assert summary["damages"] == 1
        assert summary["pending_cost_impact_cents"] == 1000

    def test_bad_filters(self, client, manager_headers):
        assert client.get("/api/adjustments?start=03/01/2024", headers=manager_headers).status_code == 400
        assert client.get("/api/adjustments?status=archived", headers=manager_headers).status_code == 400

    def test_reasons(self, client, cashier_headers):
        response = client.get("/api/adjustments/reasons", headers=cashier_headers)
        assert response.status_code == 200
        assert {"code": "wrong_item", "label": "Wrong Item Delivered"} in response.json["return"]
        assert {"code": "expired_product", "label": "Product Expired"} in response.json["damage"]

    def test_inventory_item(self, client, item_a, cashier_headers):
        response = client.get(f"/api/inventory/items/{item_a.id}", headers=cashier_headers)
        assert response.status_code == 200
        assert response.json["item"]["current_stock"] == 10
        assert client.get("/api/inventory/items/999999", headers=cashier_headers).status_code == 404
