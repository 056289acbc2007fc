"""
Payment flow: initialize, verified callbacks, idempotent settlement and refunds.
"""

from decimal import Decimal

import pytest

from app.core.enums import PaymentGatewayKind
from app.core.exceptions import ValidationError, PermissionDeniedError, ConfigurationError, UpstreamError
from connectors.payment_base import CallbackRequest
from connectors.registry import PaymentGatewayRegistry
from database import WalletTransaction
from services.order_service import OrderService
from services.payment_service import PaymentService
from services.wallet_service import WalletService

from conftest import FakeResponse, paytr_callback


def callback(paytr, order, status="success", total_amount="20000", **extra):
    return CallbackRequest(form=paytr_callback(paytr, order.order_number, status, total_amount, **extra),
                           client_ip="1.2.3.4")


class TestInitialize:
    def test_records_gateway(self, db, make_order, payment_registry, paytr):
        order = make_order()
        paytr.session.post_queue.append(FakeResponse(200, {"status": "success", "token": "tkn"}))

        result = PaymentService(db, payment_registry).initialize(order.id, buyer_id=7)

        assert result.success is True
        assert order.payment_gateway == "paytr"

    def test_other_buyer_denied(self, db, make_order, payment_registry):
        order = make_order()
        with pytest.raises(PermissionDeniedError):
            PaymentService(db, payment_registry).initialize(order.id, buyer_id=8)

    def test_paid_order_cannot_be_reinitialized(self, db, make_order, payment_registry):
        order = make_order()
        order.payment_status = "paid"
        with pytest.raises(ValidationError):
            PaymentService(db, payment_registry).initialize(order.id, buyer_id=7)

    def test_payments_disabled(self, db, make_order, payment_registry):
        order = make_order()
        disabled = PaymentGatewayRegistry({}, PaymentGatewayKind.NONE)
        with pytest.raises(ConfigurationError):
            PaymentService(db, disabled).initialize(order.id, buyer_id=7)


class TestCallback:
    def test_success_marks_paid_and_credits_wallet(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1)

        outcome = PaymentService(db, payment_registry).process_callback("paytr", callback(paytr, order))

        assert outcome.outcome == "paid"
        assert outcome.acknowledged
        assert order.payment_status == "paid"
        assert order.status == "confirmed"
        assert order.payment_reference == order.order_number
        assert WalletService(db).get_wallet(1).pending_balance == Decimal("180.00")

    def test_replayed_callback_credits_once(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1)
        service = PaymentService(db, payment_registry)

        service.process_callback("paytr", callback(paytr, order))
        outcome = service.process_callback("paytr", callback(paytr, order))

        assert outcome.outcome == "already_processed"
        assert outcome.acknowledged
        assert order.payment_status == "paid"
        assert WalletService(db).get_wallet(1).pending_balance == Decimal("180.00")
        assert db.query(WalletTransaction).filter(WalletTransaction.type == "sale").count() == 1

    def test_tampered_callback_changes_nothing(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1)
        request = callback(paytr, order)
        request.form["total_amount"] = "100"

        outcome = PaymentService(db, payment_registry).process_callback("paytr", request)

        assert outcome.outcome == "rejected"
        assert not outcome.acknowledged
        assert order.payment_status == "pending"
        assert db.query(WalletTransaction).count() == 0

    def test_underpayment_treated_as_failure(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1)

        outcome = PaymentService(db, payment_registry).process_callback(
            "paytr", callback(paytr, order, total_amount="10000")
        )

        assert outcome.outcome == "failed"
        assert order.payment_status == "failed"
        assert db.query(WalletTransaction).count() == 0

    def test_failure_does_not_downgrade_paid_order(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1)
        service = PaymentService(db, payment_registry)
        service.process_callback("paytr", callback(paytr, order))

        outcome = service.process_callback("paytr", callback(paytr, order, status="failed"))

        assert outcome.outcome == "already_processed"
        assert order.payment_status == "paid"

    def test_provider_failure(self, db, make_order, payment_registry, paytr):
        order = make_order()
        outcome = PaymentService(db, payment_registry).process_callback(
            "paytr", callback(paytr, order, status="failed", failed_reason_msg="3D doğrulama başarısız")
        )

        assert outcome.outcome == "failed"
        assert outcome.message == "3D doğrulama başarısız"
        assert order.payment_status == "failed"

    def test_unknown_order(self, db, payment_registry, paytr):
        request = CallbackRequest(form=paytr_callback(paytr, "EPZ0000000000XXXX", "success", "100"))
        outcome = PaymentService(db, payment_registry).process_callback("paytr", request)
        assert outcome.outcome == "not_found"

    def test_unknown_gateway(self, db, payment_registry):
        outcome = PaymentService(db, payment_registry).process_callback("stripe", CallbackRequest())
        assert outcome.outcome == "rejected"

    def test_payment_for_cancelled_order_not_credited(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1, stock=10)
        OrderService(db).cancel_order(order)
        service = PaymentService(db, payment_registry)

        outcome = service.process_callback("paytr", callback(paytr, order))

        assert outcome.outcome == "refund_required"
        assert outcome.acknowledged
        assert order.status == "cancelled"
        assert order.payment_status == "paid"
        assert order.payment_reference == order.order_number
        assert WalletService(db).get_wallet(1).pending_balance == Decimal("0.00")
        assert db.query(WalletTransaction).count() == 0
        assert order.items[0].offer.stock == 10

        paytr.session.post_queue.append(FakeResponse(200, {"status": "success"}))
        service.refund(order.id)
        assert order.payment_status == "refunded"
        assert order.status == "cancelled"

    def test_payment_after_delivery_releases_immediately(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1)
        orders = OrderService(db)
        for status in ("confirmed", "shipped", "delivered"):
            orders.transition(order, status)
        assert order.funds_released_at is None

        outcome = PaymentService(db, payment_registry).process_callback("paytr", callback(paytr, order))

        assert outcome.outcome == "paid"
        assert order.status == "delivered"
        wallet = WalletService(db).get_wallet(1)
        assert wallet.balance == Decimal("180.00")
        assert wallet.pending_balance == Decimal("0.00")
        assert order.funds_released_at is not None


class TestRefund:
    def _paid_order(self, db, make_order, payment_registry, paytr):
        order = make_order(seller_id=1)
        PaymentService(db, payment_registry).process_callback("paytr", callback(paytr, order))
        return order

    def test_refund_reverses_pending_and_cancels(self, db, make_order, payment_registry, paytr):
        order = self._paid_order(db, make_order, payment_registry, paytr)
        paytr.session.post_queue.append(FakeResponse(200, {"status": "success"}))

        result = PaymentService(db, payment_registry).refund(order.id)

        assert result.success is True
        assert result.refunded_amount == Decimal("200.00")
        assert order.payment_status == "refunded"
        assert order.status == "cancelled"
        wallet = WalletService(db).get_wallet(1)
        assert wallet.pending_balance == Decimal("0.00")

    def test_refund_of_delivered_order_keeps_status(self, db, make_order, payment_registry, paytr):
        order = self._paid_order(db, make_order, payment_registry, paytr)
        orders = OrderService(db)
        orders.transition(order, "shipped")
        orders.transition(order, "delivered")
        paytr.session.post_queue.append(FakeResponse(200, {"status": "success"}))

        PaymentService(db, payment_registry).refund(order.id)

        assert order.status == "delivered"
        assert order.payment_status == "refunded"
        # Aktarılmış bakiye geri alınmaz
        assert WalletService(db).get_wallet(1).balance == Decimal("180.00")

    def test_provider_rejection_keeps_order_paid(self, db, make_order, payment_registry, paytr):
        order = self._paid_order(db, make_order, payment_registry, paytr)
        paytr.session.post_queue.append(FakeResponse(200, {"status": "error", "err_msg": "Reddedildi"}))

        with pytest.raises(UpstreamError):
            PaymentService(db, payment_registry).refund(order.id)
        assert order.payment_status == "paid"

    def test_unpaid_order_cannot_be_refunded(self, db, make_order, payment_registry):
        order = make_order()
        with pytest.raises(ValidationError):
            PaymentService(db, payment_registry).refund(order.id)

    def test_amount_above_total_rejected(self, db, make_order, payment_registry, paytr):
        order = self._paid_order(db, make_order, payment_registry, paytr)
        with pytest.raises(ValidationError):
            PaymentService(db, payment_registry).refund(order.id, Decimal("200.01"))
