"""
Order shipping through the active carrier: create, cancel, track, label.
"""

from decimal import Decimal

import pytest

from app.core.enums import PaymentStatus, ShippingProviderKind
from app.core.exceptions import ValidationError, PermissionDeniedError, ConfigurationError
from connectors.registry import ShippingCarrierRegistry
from database import ShippingLog
from services.order_service import OrderService
from services.shipping_service import ShippingService
from services.wallet_service import WalletService

from conftest import FakeResponse, token_response

SENDER = {"name": "Depo Ecza", "city": "Ankara", "district": "Çankaya", "address": "Atatürk Blv. 1",
          "phone": "03121112233"}


@pytest.fixture
def confirmed_order(db, make_order):
    order = make_order(seller_id=1)
    OrderService(db).transition(order, "confirmed")
    return order


def ship(db, registry, session, order):
    session.get_queue.append(token_response())
    session.post_queue.append(FakeResponse(200, {"deliveryNo": "HJ100", "barcode": "BC100"}))
    return ShippingService(db, registry).create_shipment(order.id, 1, SENDER)


class TestCreateShipment:
    def test_sets_tracking_and_ships(self, db, confirmed_order, shipping_registry, hepsijet_session):
        result = ship(db, shipping_registry, hepsijet_session, confirmed_order)

        assert result.success is True
        assert confirmed_order.tracking_number == "HJ100"
        assert confirmed_order.barcode == "BC100"
        assert confirmed_order.shipping_provider == "hepsijet"
        assert confirmed_order.status == "shipped"
        assert confirmed_order.shipped_at is not None

        log = db.query(ShippingLog).one()
        assert log.action == "create"
        assert log.status == "success"

    def test_receiver_from_shipping_address(self, db, confirmed_order, shipping_registry, hepsijet_session):
        ship(db, shipping_registry, hepsijet_session, confirmed_order)

        payload = hepsijet_session.calls_to("/delivery/sendDeliveryOrderEnhanced")[0]["json"]
        assert payload["invoiceNumber"] == confirmed_order.order_number
        assert len(payload["parcels"]) == 2

    def test_carrier_failure_logged_order_unchanged(self, db, confirmed_order, shipping_registry, hepsijet_session):
        hepsijet_session.get_queue.append(token_response())
        hepsijet_session.post_queue.append(FakeResponse(422, {"error": "Adres eksik"}))

        result = ShippingService(db, shipping_registry).create_shipment(confirmed_order.id, 1, SENDER)

        assert result.success is False
        assert confirmed_order.status == "confirmed"
        assert confirmed_order.tracking_number is None
        log = db.query(ShippingLog).one()
        assert log.status == "failed"
        assert log.response_code == 422

    def test_pending_order_not_shippable(self, db, make_order, shipping_registry):
        order = make_order(seller_id=1)
        with pytest.raises(ValidationError):
            ShippingService(db, shipping_registry).create_shipment(order.id, 1, SENDER)

    def test_foreign_seller_denied(self, db, confirmed_order, shipping_registry):
        with pytest.raises(PermissionDeniedError):
            ShippingService(db, shipping_registry).create_shipment(confirmed_order.id, 2, SENDER)

    def test_second_shipment_rejected(self, db, confirmed_order, shipping_registry, hepsijet_session):
        ship(db, shipping_registry, hepsijet_session, confirmed_order)
        confirmed_order.status = "confirmed"

        with pytest.raises(ValidationError):
            ShippingService(db, shipping_registry).create_shipment(confirmed_order.id, 1, SENDER)

    def test_carrier_disabled(self, db, confirmed_order):
        registry = ShippingCarrierRegistry({}, ShippingProviderKind.NONE)
        with pytest.raises(ConfigurationError):
            ShippingService(db, registry).create_shipment(confirmed_order.id, 1, SENDER)


class TestCancelShipment:
    def test_cancel_reverts_to_confirmed(self, db, confirmed_order, shipping_registry, hepsijet_session):
        ship(db, shipping_registry, hepsijet_session, confirmed_order)
        hepsijet_session.post_queue.append(FakeResponse(200, {"success": True}))

        result = ShippingService(db, shipping_registry).cancel_shipment(confirmed_order.id, 1)

        assert result.success is True
        assert confirmed_order.status == "confirmed"
        assert confirmed_order.tracking_number is None
        assert confirmed_order.shipping_status == "cancelled"
        assert hepsijet_session.calls[-1]["url"].endswith("/rest/delivery/deleteDeliveryOrder/HJ100")

    def test_nothing_to_cancel(self, db, confirmed_order, shipping_registry):
        with pytest.raises(ValidationError):
            ShippingService(db, shipping_registry).cancel_shipment(confirmed_order.id, 1)


class TestTracking:
    def test_delivered_releases_seller_funds(self, db, confirmed_order, shipping_registry, hepsijet_session):
        confirmed_order.payment_status = PaymentStatus.PAID.value
        WalletService(db).credit_order(confirmed_order)
        ship(db, shipping_registry, hepsijet_session, confirmed_order)
        hepsijet_session.post_queue.append(FakeResponse(200, {"status": "Teslim Edildi", "deliveryNo": "HJ100"}))

        result = ShippingService(db, shipping_registry).track_shipment(confirmed_order.id, 1)

        assert result.success is True
        assert confirmed_order.status == "delivered"
        assert confirmed_order.shipping_status == "delivered"
        wallet = WalletService(db).get_wallet(1)
        assert wallet.balance == Decimal("180.00")
        assert wallet.pending_balance == Decimal("0.00")

    def test_in_transit_keeps_order_shipped(self, db, confirmed_order, shipping_registry, hepsijet_session):
        ship(db, shipping_registry, hepsijet_session, confirmed_order)
        hepsijet_session.post_queue.append(FakeResponse(200, {"status": "Yolda"}))

        ShippingService(db, shipping_registry).track_shipment(confirmed_order.id, 1)

        assert confirmed_order.status == "shipped"
        assert confirmed_order.shipping_status == "in_transit"


class TestLabel:
    def test_total_parcel_is_item_quantity(self, db, confirmed_order, shipping_registry, hepsijet_session):
        ship(db, shipping_registry, hepsijet_session, confirmed_order)
        hepsijet_session.post_queue.append(FakeResponse(200, {"labelUrl": "https://cdn.example.com/l.pdf"}))

        result = ShippingService(db, shipping_registry).get_label(confirmed_order.id, 1)

        assert result.success is True
        assert confirmed_order.shipping_label_url == "https://cdn.example.com/l.pdf"
        label_call = hepsijet_session.calls_to("/delivery/BarcodeLabel")[0]
        assert label_call["json"] == {"barcode": "BC100", "totalParcel": 2}
        actions = sorted(log.action for log in db.query(ShippingLog))
        assert actions == ["create", "label"]
