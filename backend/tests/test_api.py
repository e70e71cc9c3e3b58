# Overview: Pytest coverage for the HTTP API (envelope, status codes, end-to-end flows).

"""
API Tests

Drive the blueprints through the Flask test client and check the JSON
envelope {success, data, error, details, count, total} and status codes.
"""

import pytest


def _create_shipment(client, driver_id, product_id, quantity=10, price=1000):
    resp = client.post(
        "/api/shipments",
        json={
            "driver_id": driver_id,
            "lines": [{"product_id": product_id, "quantity": quantity, "unit_price_cents": price}],
        },
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def _create_invoice(client, customer_id, shipment_id, product_id, quantity):
    return client.post(
        "/api/invoices",
        json={
            "customer_id": customer_id,
            "shipment_id": shipment_id,
            "lines": [{"product_id": product_id, "quantity": quantity}],
        },
    )


# =============================================================================
# SYSTEM
# =============================================================================


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["data"]["checks"]["database"]["status"] == "healthy"


def test_cors_header_for_allowed_origin(client, db_session):
    resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    resp = client.get("/health", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in resp.headers


# =============================================================================
# REFERENCE DATA
# =============================================================================


class TestReferenceData:
    def test_customer_crud(self, client, db_session):
        resp = client.post("/api/customers", json={"name": "Ferreteria Lopez", "phone": "+5215550001"})
        assert resp.status_code == 201
        customer_id = resp.get_json()["data"]["id"]

        resp = client.put(f"/api/customers/{customer_id}", json={"address": "Av. Juarez 3"})
        assert resp.get_json()["data"]["address"] == "Av. Juarez 3"

        resp = client.get("/api/customers")
        body = resp.get_json()
        assert body["success"] is True
        assert body["count"] == 1

        assert client.delete(f"/api/customers/{customer_id}").status_code == 200
        assert client.get(f"/api/customers/{customer_id}").status_code == 404

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({}, "Missing required fields: name"),
            ({"name": "X", "phone": "555-0001"}, "phone must contain only digits with an optional leading +"),
            ({"name": "X", "balance": 10}, "Field not allowed: balance"),
        ],
    )
    def test_customer_validation(self, client, db_session, payload, message):
        resp = client.post("/api/customers", json=payload)
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "error": message}

    def test_driver_toggle_and_active_filter(self, client, driver):
        resp = client.patch(f"/api/drivers/{driver.id}/toggle-status")
        assert resp.get_json()["data"]["is_active"] is False

        assert client.get("/api/drivers?active=true").get_json()["count"] == 0
        assert client.get("/api/drivers").get_json()["count"] == 1

    def test_product_category_filter(self, client, make_product):
        make_product("Cement", category="Construction")
        make_product("Paint", category="Finishes")

        body = client.get("/api/products?category=finish").get_json()
        assert [p["name"] for p in body["data"]] == ["Paint"]

    def test_accounts_for_transfer(self, client, db_session):
        resp = client.post("/api/accounts-for-transfer", json={"name": "Main checking"})
        assert resp.status_code == 201
        assert client.get("/api/accounts-for-transfer").get_json()["count"] == 1

    def test_referenced_driver_cannot_be_deleted(self, client, driver, shipment):
        resp = client.delete(f"/api/drivers/{driver.id}")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot delete driver referenced by shipments"


# =============================================================================
# SHIPMENTS
# =============================================================================


class TestShipmentsApi:
    def test_create_assigns_number_and_stock(self, client, driver, product):
        data = _create_shipment(client, driver.id, product.id)

        assert data["shipment_number"] == "CARGA-001"
        assert data["driver_name"] == driver.name
        assert data["lines"][0]["stock"] == 10

    def test_client_stock_is_ignored(self, client, driver, product):
        resp = client.post(
            "/api/shipments",
            json={
                "driver_id": driver.id,
                "lines": [{"product_id": product.id, "quantity": 5, "unit_price_cents": 100, "stock": 1}],
            },
        )
        assert resp.get_json()["data"]["lines"][0]["stock"] == 5

    def test_requires_products(self, client, driver):
        resp = client.post("/api/shipments", json={"driver_id": driver.id, "lines": []})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Driver and products are required"

    def test_unknown_product(self, client, driver):
        resp = client.post(
            "/api/shipments",
            json={"driver_id": driver.id, "lines": [{"product_id": 99999, "quantity": 1, "unit_price_cents": 1}]},
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "One or more products not found"

    def test_status_endpoint(self, client, shipment):
        resp = client.patch(f"/api/shipments/{shipment.id}/status", json={"status": "delivered"})
        assert resp.get_json()["data"]["status"] == "delivered"

        resp = client.patch(f"/api/shipments/{shipment.id}/status", json={"status": "lost"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Status must be one of: pending, in_transit, delivered, cancelled"

    def test_list_filters(self, client, shipment):
        assert client.get("/api/shipments?status=pending").get_json()["count"] == 1
        assert client.get("/api/shipments?status=delivered").get_json()["count"] == 0
        assert client.get(f"/api/shipments?driver={shipment.driver_id}").get_json()["count"] == 1

    def test_available_stock_and_invoices(self, client, customer, product, shipment):
        _create_invoice(client, customer.id, shipment.id, product.id, 3)

        body = client.get(f"/api/shipments/{shipment.id}/available-stock").get_json()
        assert body["data"] == [
            {"product_id": product.id, "name": product.name, "quantity": 10, "reserved": 3, "available": 7}
        ]

        body = client.get(f"/api/shipments/{shipment.id}/invoices?product_id={product.id}").get_json()
        assert body["count"] == 1
        assert body["data"][0]["total_paid_cents"] == 0

    def test_reduce_below_invoiced(self, client, customer, product, shipment):
        _create_invoice(client, customer.id, shipment.id, product.id, 6)

        resp = client.put(
            f"/api/shipments/{shipment.id}",
            json={"lines": [{"product_id": product.id, "quantity": 4, "unit_price_cents": 1000}]},
        )
        body = resp.get_json()
        assert resp.status_code == 400
        assert body["error"] == "Shipment quantities are below invoiced quantities"
        assert len(body["details"]["errors"]) == 1

    def test_recalculate_stock(self, client, shipment):
        resp = client.post(f"/api/shipments/{shipment.id}/recalculate-stock")
        assert resp.get_json()["data"]["total_stock"] == 10

    def test_missing_shipment(self, client, db_session):
        resp = client.get("/api/shipments/99999")
        assert resp.status_code == 404
        assert resp.get_json() == {"success": False, "error": "Shipment not found"}


# =============================================================================
# INVOICES AND PAYMENTS
# =============================================================================


class TestInvoiceFlow:
    def test_oversell_and_release(self, client, customer, product, shipment):
        resp = _create_invoice(client, customer.id, shipment.id, product.id, 6)
        assert resp.status_code == 201
        invoice = resp.get_json()["data"]
        assert invoice["invoice_number"] == "FACT-001"
        assert invoice["total_cents"] == 6000
        assert invoice["status"] == "unpaid"

        resp = _create_invoice(client, customer.id, shipment.id, product.id, 5)
        body = resp.get_json()
        assert resp.status_code == 400
        assert body["error"] == "Insufficient stock"
        assert body["details"]["errors"] == [
            f"Insufficient stock for {product.name}. Available: 4, Requested: 5"
        ]

        assert client.delete(f"/api/invoices/{invoice['id']}").status_code == 200
        stock = client.get(f"/api/shipments/{shipment.id}").get_json()["data"]["lines"][0]["stock"]
        assert stock == 10

    def test_client_total_and_status_are_rejected(self, client, customer, product, shipment):
        resp = client.post(
            "/api/invoices",
            json={
                "customer_id": customer.id,
                "shipment_id": shipment.id,
                "total_cents": 1,
                "lines": [{"product_id": product.id, "quantity": 1}],
            },
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Field not allowed: total_cents"

    def test_settlement(self, client, customer, product, shipment):
        invoice = _create_invoice(client, customer.id, shipment.id, product.id, 1).get_json()["data"]

        resp = client.post("/api/payments", json={"invoice_id": invoice["id"], "amount_cents": 150000, "type": "cash"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Payment amount cannot exceed invoice total"

        payment = client.post(
            "/api/payments", json={"invoice_id": invoice["id"], "amount_cents": 600, "type": "cash"}
        ).get_json()["data"]
        assert payment["approved"] is False
        assert client.get(f"/api/invoices/{invoice['id']}").get_json()["data"]["status"] == "unpaid"

        resp = client.post(f"/api/payments/{payment['id']}/approve")
        assert resp.status_code == 200
        assert client.get(f"/api/invoices/{invoice['id']}").get_json()["data"]["status"] == "partial"

        resp = client.delete(f"/api/invoices/{invoice['id']}")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot delete invoice with payments. Delete payments first."

        client.post(
            "/api/payments",
            json={"invoice_id": invoice["id"], "amount_cents": 400, "type": "transfer", "approved": True},
        )
        body = client.get(f"/api/payments/invoice/{invoice['id']}").get_json()
        assert body["count"] == 2
        assert body["total"] == 1000

        invoice_body = client.get(f"/api/invoices/{invoice['id']}").get_json()["data"]
        assert invoice_body["status"] == "paid"
        assert invoice_body["total_paid_cents"] == 1000

        resp = client.put(f"/api/invoices/{invoice['id']}", json={"lines": [{"product_id": product.id, "quantity": 2}]})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot edit fully paid invoices"

        resp = client.put(f"/api/payments/{payment['id']}", json={"notes": "late"})
        assert resp.status_code == 400

    def test_invoice_list_filters(self, client, customer, product, shipment):
        _create_invoice(client, customer.id, shipment.id, product.id, 1)

        body = client.get(f"/api/invoices?customer={customer.id}").get_json()
        assert (body["count"], body["total"]) == (1, 1)
        assert client.get("/api/invoices?status=paid").get_json()["count"] == 0
        assert client.get(f"/api/invoices?shipment={shipment.id}").get_json()["count"] == 1

    def test_payment_list_filters(self, client, customer, product, shipment):
        invoice = _create_invoice(client, customer.id, shipment.id, product.id, 1).get_json()["data"]
        client.post("/api/payments", json={"invoice_id": invoice["id"], "amount_cents": 100, "type": "cash"})

        body = client.get("/api/payments?approved=false").get_json()
        assert (body["count"], body["total"]) == (1, 1)
        assert client.get("/api/payments?approved=true").get_json()["total"] == 0
        assert client.get("/api/payments?type=transfer").get_json()["count"] == 0
        assert client.get("/api/payments?approved=maybe").status_code == 400

    def test_unknown_invoice_payment(self, client, db_session):
        resp = client.post("/api/payments", json={"invoice_id": 99999, "amount_cents": 1, "type": "cash"})
        assert resp.status_code == 404
