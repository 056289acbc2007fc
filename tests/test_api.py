"""
HTTP layer: API key, identity headers, error mapping and callback acknowledgement.
"""

import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.main import app
from connectors.registry import get_payment_registry, get_shipping_registry
from database import get_db
from services.order_service import OrderService
from services.payment_service import PaymentService

from conftest import paytr_callback, ADDRESS

API_KEY = {"X-API-Key": "test-api-key"}
BUYER = {**API_KEY, "X-User-Id": "7"}
SELLER = {**API_KEY, "X-Seller-Id": "1"}


@pytest.fixture
def client(db, payment_registry, shipping_registry):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_payment_registry] = lambda: payment_registry
    app.dependency_overrides[get_shipping_registry] = lambda: shipping_registry
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    def test_health_without_key(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["database_connection"] == "connected"
        assert body["payment_gateway"] == "paytr"
        assert body["shipping_provider"] == "hepsijet"

    def test_missing_api_key(self, client):
        assert client.get("/api/wallet", headers={"X-Seller-Id": "1"}).status_code == 401

    def test_missing_identity_header(self, client):
        assert client.get("/api/wallet", headers=API_KEY).status_code == 401


class TestOrders:
    def test_create_get_cancel(self, client, make_offer):
        offer = make_offer(price="100", stock=5)

        response = client.post("/api/orders", headers=BUYER, json={
            "items": [{"offer_id": offer.id, "quantity": 2}],
            "shipping_address": ADDRESS,
        })
        assert response.status_code == 201
        order = response.json()
        assert Decimal(order["total_amount"]) == Decimal("200.00")
        assert Decimal(order["total_commission"]) == Decimal("20.00")
        assert order["status"] == "pending"

        assert client.get(f"/api/orders/{order['id']}", headers=BUYER).status_code == 200
        other_buyer = {**API_KEY, "X-User-Id": "8"}
        assert client.get(f"/api/orders/{order['id']}", headers=other_buyer).status_code == 403

        cancelled = client.post(f"/api/orders/{order['id']}/cancel", headers=BUYER)
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert offer.stock == 5

    def test_insufficient_stock(self, client, make_offer):
        offer = make_offer(stock=1)
        response = client.post("/api/orders", headers=BUYER, json={
            "items": [{"offer_id": offer.id, "quantity": 2}],
            "shipping_address": ADDRESS,
        })
        assert response.status_code == 400

    def test_seller_view_breakdown(self, client, make_order):
        order = make_order(seller_id=1)
        response = client.get(f"/api/seller/orders/{order.id}", headers=SELLER)

        assert response.status_code == 200
        labels = [d["label"] for d in response.json()["financial_breakdown"]["deductions"]]
        assert "Kategori Komisyonu (%10)" in labels


class TestPaymentCallback:
    def test_paytr_callback_acknowledged_with_ok(self, client, make_order, paytr):
        order = make_order(seller_id=1)
        form = paytr_callback(paytr, order.order_number, "success", "20000")

        response = client.post("/api/payments/callback/paytr", data=form)

        assert response.status_code == 200
        assert response.text == "OK"
        assert order.payment_status == "paid"

        wallet = client.get("/api/wallet", headers=SELLER).json()
        assert Decimal(wallet["pending_balance"]) == Decimal("180.00")

    def test_callback_settled_in_worker_thread(self, client, make_order, paytr, monkeypatch):
        order = make_order(seller_id=1)
        seen = []
        settle = PaymentService.process_callback

        def recording(self, gateway, request):
            try:
                asyncio.get_running_loop()
                seen.append("event_loop")
            except RuntimeError:
                seen.append("worker")
            return settle(self, gateway, request)

        monkeypatch.setattr(PaymentService, "process_callback", recording)
        response = client.post("/api/payments/callback/paytr",
                               data=paytr_callback(paytr, order.order_number, "success", "20000"))

        assert response.text == "OK"
        assert seen == ["worker"]

    def test_late_payment_for_cancelled_order_acknowledged(self, client, db, make_order, paytr):
        order = make_order(seller_id=1)
        OrderService(db).cancel_order(order)
        db.commit()

        response = client.post("/api/payments/callback/paytr",
                               data=paytr_callback(paytr, order.order_number, "success", "20000"))

        assert response.text == "OK"
        assert order.status == "cancelled"
        wallet = client.get("/api/wallet", headers=SELLER).json()
        assert Decimal(wallet["pending_balance"]) == Decimal("0")

    def test_bad_hash_rejected(self, client, make_order, paytr):
        order = make_order()
        form = paytr_callback(paytr, order.order_number, "success", "20000")
        form["hash"] = "forged"

        response = client.post("/api/payments/callback/paytr", data=form)

        assert response.status_code == 403
        assert order.payment_status == "pending"

    def test_payment_config(self, client):
        body = client.get("/api/payments/config", headers=API_KEY).json()
        assert body["enabled"] is True
        assert body["active_gateway"] == "paytr"


class TestWallet:
    def test_summary_for_new_seller(self, client):
        response = client.get("/api/wallet", headers=SELLER)
        assert response.status_code == 200
        assert Decimal(response.json()["total_balance"]) == Decimal("0")

    def test_invalid_iban(self, client):
        response = client.post("/api/wallet/bank-accounts", headers=SELLER, json={
            "bank_name": "Ziraat",
            "iban": "TR330006100519786457841327",
            "account_holder": "Depo Ecza",
        })
        assert response.status_code == 400

    def test_payout_over_balance(self, client):
        account = client.post("/api/wallet/bank-accounts", headers=SELLER, json={
            "bank_name": "Ziraat",
            "iban": "TR33 0006 1005 1978 6457 8413 26",
            "account_holder": "Depo Ecza",
        })
        assert account.status_code == 201
        assert account.json()["is_default"] is True

        response = client.post("/api/wallet/payout-requests", headers=SELLER, json={
            "amount": "150", "bank_account_id": account.json()["id"],
        })
        assert response.status_code == 402


class TestAdmin:
    def test_status_update(self, client, make_order):
        order = make_order()
        response = client.post(f"/api/admin/orders/{order.id}/status", headers=API_KEY,
                               json={"status": "confirmed"})
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

    def test_invalid_jump_conflict(self, client, make_order):
        order = make_order()
        response = client.post(f"/api/admin/orders/{order.id}/status", headers=API_KEY,
                               json={"status": "delivered"})
        assert response.status_code == 409

    def test_unknown_status(self, client, make_order):
        order = make_order()
        response = client.post(f"/api/admin/orders/{order.id}/status", headers=API_KEY,
                               json={"status": "lost"})
        assert response.status_code == 400
