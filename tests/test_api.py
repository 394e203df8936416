"""
HTTP API Tests
==============

End-to-end through FastAPI: the billing happy path, the error envelope,
request validation, pagination clamping and audit attribution.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def catalog(client):
    plan = client.post("/api/plans", json={"name": "Monthly", "billing_period": "MONTHLY", "due_days": 15}).json()
    product = client.post("/api/products", json={"name": "Analytics Suite"}).json()
    variant = client.post(
        f"/api/products/{product['id']}/variants",
        json={"name": "Pro seat", "price": "999.00", "sku": "AS-PRO"},
    ).json()
    tax = client.post("/api/tax-rates", json={"name": "GST", "rate": "18"}).json()
    discount = client.post(
        "/api/discounts", json={"name": "Ten off", "code": "TEN", "type": "PERCENTAGE", "value": "10"}
    ).json()
    return {"plan": plan, "product": product, "variant": variant, "tax": tax, "discount": discount}


def _new_subscription(client, catalog, headers=None):
    resp = client.post(
        "/api/subscriptions",
        json={"user_id": "user-1", "plan_id": catalog["plan"]["id"]},
        headers=headers or {},
    )
    assert resp.status_code == 201
    return resp.json()


class TestBillingFlow:

    def test_subscription_to_paid_invoice(self, client, catalog):
        sub = _new_subscription(client, catalog)
        assert sub["status"] == "DRAFT"
        assert sub["allowed_actions"] == ["quote"]

        line = client.post(
            f"/api/subscriptions/{sub['id']}/lines",
            json={
                "variant_id": catalog["variant"]["id"],
                "quantity": 2,
                "discount_id": catalog["discount"]["id"],
                "tax_rate_id": catalog["tax"]["id"],
            },
        )
        assert line.status_code == 201
        assert line.json()["unit_price"] == "999.00"

        for action in ("quote", "confirm", "activate"):
            resp = client.post(f"/api/subscriptions/{sub['id']}/{action}")
            assert resp.status_code == 200, resp.json()
        assert resp.json()["status"] == "ACTIVE"

        generated = client.post(f"/api/subscriptions/{sub['id']}/invoices", json={"period_start": "2026-01-01"})
        assert generated.status_code == 200
        invoice = generated.json()
        assert invoice["total"] == "2121.88"
        assert invoice["tax_amount"] == "323.68"
        assert invoice["period_end"] == "2026-02-01"
        assert invoice["balance_due"] == "2121.88"

        again = client.post(f"/api/subscriptions/{sub['id']}/invoices", json={"period_start": "2026-01-01"})
        assert again.json()["id"] == invoice["id"]

        assert client.post(f"/api/invoices/{invoice['id']}/confirm").json()["status"] == "CONFIRMED"

        paid = client.post(f"/api/invoices/{invoice['id']}/payments", json={"amount": "2121.88", "method": "CASH"})
        assert paid.status_code == 201
        assert paid.json()["amount"] == "2121.88"

        final = client.get(f"/api/invoices/{invoice['id']}").json()
        assert final["status"] == "PAID"
        assert final["balance_due"] == "0.00"
        assert final["allowed_actions"] == []
        assert len(final["payments"]) == 1

        summary = client.get("/api/reports/summary").json()
        assert summary["total_revenue"] == "2121.88"
        assert summary["active_subscriptions_count"] == 1

    def test_patch_subscription_header(self, client, catalog):
        sub = _new_subscription(client, catalog)
        resp = client.patch(f"/api/subscriptions/{sub['id']}", json={"notes": "VIP", "payment_term_days": 10})
        assert resp.status_code == 200
        body = resp.json()
        assert body["notes"] == "VIP"
        assert body["payment_term_days"] == 10
        assert body["status"] == "DRAFT"

        resp = client.patch(f"/api/subscriptions/{sub['id']}", json={"payment_term_days": -1})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "SUB-API-002"

    def test_discount_validation_endpoint(self, client, catalog):
        resp = client.post(
            "/api/discounts/validate",
            json={"code": "TEN", "cart_items": [{"quantity": 2, "unit_price": "50.00"}]},
        )
        assert resp.status_code == 200
        assert resp.json()["valid"] is True
        assert resp.json()["discount_amount"] == "10.00"

        missing = client.post("/api/discounts/validate", json={"code": "NOPE", "cart_items": []}).json()
        assert missing == {"valid": False, "discount": None, "discount_amount": None, "message": "Invalid discount code"}


class TestErrorEnvelope:

    def test_not_found(self, client):
        resp = client.get("/api/subscriptions/missing")
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "SUB-API-001"
        assert error["detail"] == "Subscription not found: missing"
        assert set(error) == {"code", "title", "message", "detail", "retryable", "remediation"}

    def test_illegal_transition(self, client, catalog):
        sub = _new_subscription(client, catalog)
        resp = client.post(f"/api/subscriptions/{sub['id']}/activate")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "SUB-SUB-001"

    def test_business_rule(self, client, catalog):
        sub = _new_subscription(client, catalog)
        resp = client.post(f"/api/subscriptions/{sub['id']}/invoices", json={"period_start": "2026-01-01"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "SUB-INV-002"

    def test_request_validation(self, client, catalog):
        sub = _new_subscription(client, catalog)
        resp = client.post(
            f"/api/subscriptions/{sub['id']}/lines",
            json={"variant_id": catalog["variant"]["id"], "quantity": 0},
        )
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "SUB-API-002"
        assert "quantity" in error["detail"]

    def test_duplicate_discount_code(self, client, catalog):
        resp = client.post("/api/discounts", json={"name": "Dup", "code": "TEN", "type": "FIXED", "value": "5"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "SUB-DSC-002"

    def test_patch_discount_with_nulls(self, client, catalog):
        url = f"/api/discounts/{catalog['discount']['id']}"

        resp = client.patch(url, json={"applicable_product_ids": None})
        assert resp.status_code == 200
        assert resp.json()["applicable_product_ids"] == []

        resp = client.patch(url, json={"name": None})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "SUB-API-002"
        assert client.get(url).json()["name"] == "Ten off"


class TestPagination:

    def test_limit_clamped(self, client, catalog):
        page = client.get("/api/plans", params={"limit": 1000, "offset": -3}).json()
        assert page["limit"] == 100
        assert page["offset"] == 0
        assert page["total"] == 1

    def test_default_limit(self, client, catalog):
        assert client.get("/api/subscriptions").json()["limit"] == 20


class TestRequestContext:

    def test_actor_header_lands_in_audit(self, client, catalog):
        sub = _new_subscription(client, catalog, headers={"X-Actor-Id": "alice"})
        entries = client.get("/api/audit", params={"entity_id": sub["id"]}).json()["items"]
        assert [e["actor_id"] for e in entries] == ["alice"]
        assert entries[0]["action"] == "CREATED"

    def test_request_id_echoed(self, client):
        resp = client.get("/api/health", headers={"X-Request-Id": "req-42"})
        assert resp.status_code == 200
        assert resp.headers["x-request-id"] == "req-42"
        assert resp.json()["database"] == "ok"
