"""
Payment Service - Ödeme başlatma, callback işleme ve iade
Callback işleme idempotenttir: aynı ödeme iki kez cüzdana yazılmaz
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from database import Order
from app.core.enums import OrderStatus, PaymentStatus
from app.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    UpstreamError,
    MissingReferenceError,
)
from app.core.money import money
from connectors.payment_base import CallbackRequest, PaymentInitResult, PaymentResult, RefundResult
from connectors.registry import PaymentGatewayRegistry
from .wallet_service import WalletService

logger = logging.getLogger(__name__)


@dataclass
class CallbackOutcome:
    """
    Callback işleme sonucu

    outcome: paid | failed | rejected | already_processed | not_found | ignored | refund_required
    """
    outcome: str
    order_id: Optional[int] = None
    order_number: Optional[str] = None
    message: Optional[str] = None

    @property
    def acknowledged(self) -> bool:
        """Sağlayıcıya 200 dönülmeli mi (tekrar denemesin)"""
        return self.outcome != "rejected"


class PaymentService:
    """Ödeme akışı (adapter + sipariş + cüzdan)"""

    def __init__(self, db: Session, registry: PaymentGatewayRegistry, wallet_service: Optional[WalletService] = None):
        self.db = db
        self.registry = registry
        self.wallets = wallet_service or WalletService(db)

    def _order_for_buyer(self, order_id: int, buyer_id: Optional[int]) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise NotFoundError("Sipariş bulunamadı.")
        if buyer_id is not None and order.buyer_id != buyer_id:
            raise PermissionDeniedError("Bu siparişe erişim yetkiniz yok.")
        return order

    def _active_gateway(self):
        gateway = self.registry.active
        if gateway is None:
            raise ConfigurationError("Ödeme sistemi şu anda aktif değil.")
        return gateway

    # ========================================================================
    # INITIALIZE
    # ========================================================================

    def initialize(self, order_id: int, buyer_id: Optional[int], client_ip: Optional[str] = None) -> PaymentInitResult:
        """
        Aktif sağlayıcı ile ödeme başlatır

        Raises:
            NotFoundError / PermissionDeniedError: Sipariş alıcıya ait değil
            ValidationError: Ödeme zaten alınmış veya sipariş iptal
            ConfigurationError: Aktif ödeme sağlayıcısı yok
        """
        order = self._order_for_buyer(order_id, buyer_id)

        if order.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError("Bu sipariş için ödeme zaten yapılmış veya işlenmiş.")
        if order.status == OrderStatus.CANCELLED.value:
            raise ValidationError("İptal edilmiş sipariş için ödeme yapılamaz.")

        gateway = self._active_gateway()
        result = gateway.initialize(order, client_ip=client_ip)

        if result.success:
            order.payment_gateway = gateway.name
            self.db.flush()
            logger.info(f"💳 Payment initialized: {order.order_number} via {gateway.name}")
        else:
            logger.warning(f"Payment initialize failed: {order.order_number} ({result.error_code}: {result.error_message})")

        return result

    def checkout_html(self, order_id: int, buyer_id: Optional[int], client_ip: Optional[str] = None) -> str:
        order = self._order_for_buyer(order_id, buyer_id)
        if order.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError("Bu sipariş için ödeme zaten yapılmış veya işlenmiş.")
        return self._active_gateway().get_checkout_html(order, client_ip=client_ip)

    # ========================================================================
    # CALLBACK
    # ========================================================================

    def _locate_order(self, reference: Optional[str]) -> Optional[Order]:
        if not reference:
            return None
        return (
            self.db.query(Order)
            .filter(Order.order_number == str(reference))
            .with_for_update()
            .first()
        )

    def process_callback(self, gateway_name: str, request: CallbackRequest) -> CallbackOutcome:
        """
        Sağlayıcı callback'ini işler

        - İmza geçersiz: hiçbir kayıt değişmez, kaynak IP loglanır (rejected)
        - Sipariş zaten paid: no-op (already_processed)
        - completed: paid + confirmed + cüzdan kredisi (satıcı başına bir kez)
        - Eksik ödenen tutar başarısız sayılır
        - İptal edilmiş sipariş: paid kaydedilir, kredi yazılmaz (refund_required)
        - Ödemeden önce teslim edilmiş sipariş: kredi hemen aktarılır
        """
        gateway = self.registry.get(gateway_name)
        if gateway is None:
            logger.warning(f"Callback for unknown gateway '{gateway_name}' from {request.client_ip}")
            return CallbackOutcome("rejected", message="Bilinmeyen ödeme sağlayıcısı")

        result: PaymentResult = gateway.handle_callback(request)

        if not result.signature_valid:
            logger.warning(
                f"❌ {gateway.name} callback rejected ({result.error_message}), source ip={request.client_ip}"
            )
            return CallbackOutcome("rejected", message=result.error_message)

        order = self._locate_order(result.order_reference)
        if order is None:
            logger.error(f"❌ {gateway.name} callback: order not found (ref={result.order_reference})")
            return CallbackOutcome("not_found", message="Sipariş bulunamadı")

        if order.payment_status == PaymentStatus.PAID.value:
            logger.info(f"ℹ️ Order {order.order_number} already paid, callback ignored")
            return CallbackOutcome("already_processed", order.id, order.order_number)

        if order.payment_status == PaymentStatus.REFUNDED.value:
            logger.warning(f"Order {order.order_number} refunded, callback ignored")
            return CallbackOutcome("ignored", order.id, order.order_number)

        if result.is_completed and result.paid_amount is not None and money(result.paid_amount) < money(order.total_amount):
            logger.error(
                f"❌ Paid amount mismatch for {order.order_number}: "
                f"paid={result.paid_amount} expected={order.total_amount}"
            )
            result = PaymentResult.failed("Ödenen tutar sipariş tutarından düşük", error_code="amount_mismatch",
                                          order_reference=result.order_reference, raw=result.raw)

        if not result.is_completed:
            order.payment_status = PaymentStatus.FAILED.value
            order.payment_gateway = gateway.name
            self.db.flush()
            logger.warning(f"Payment failed for {order.order_number}: {result.error_message}")
            return CallbackOutcome("failed", order.id, order.order_number, result.error_message)

        order.payment_status = PaymentStatus.PAID.value
        order.payment_gateway = gateway.name
        order.payment_reference = result.transaction_id

        if order.status == OrderStatus.CANCELLED.value:
            # Stok geri yüklendi, satıcıya kredi yazılmaz; tutar iade edilmeli
            self.db.flush()
            logger.warning(
                f"⚠️ Payment received for cancelled order {order.order_number} "
                f"ref={result.transaction_id} paid={result.paid_amount}, refund required"
            )
            return CallbackOutcome("refund_required", order.id, order.order_number,
                                   "İptal edilmiş sipariş için ödeme alındı, iade gerekli")

        if order.status == OrderStatus.PENDING.value:
            order.status = OrderStatus.CONFIRMED.value

        credited = self.wallets.credit_order(order)
        if order.status == OrderStatus.DELIVERED.value:
            # Teslimat ödemeden önce işaretlenmiş
            self.wallets.release_order(order)
        self.db.flush()

        logger.info(
            f"✅ Payment completed: {order.order_number} ref={result.transaction_id} "
            f"paid={result.paid_amount} credited_items={credited}"
        )
        return CallbackOutcome("paid", order.id, order.order_number)

    # ========================================================================
    # REFUND
    # ========================================================================

    def refund(self, order_id: int, amount: Optional[Decimal] = None, client_ip: Optional[str] = None) -> RefundResult:
        """
        Ödenmiş siparişi iade eder

        Başarılı iade: payment_status refunded, status cancelled,
        aktarılmamış satıcı tutarları geri alınır.

        Raises:
            ValidationError: Sipariş ödenmemiş veya tutar geçersiz
            MissingReferenceError: Ödeme referansı yok
            UpstreamError: Sağlayıcı iadeyi reddetti
        """
        order = self._order_for_buyer(order_id, None)

        if order.payment_status != PaymentStatus.PAID.value:
            raise ValidationError("Yalnızca ödemesi alınmış siparişler iade edilebilir.")
        if not order.payment_reference:
            raise MissingReferenceError("Ödeme referansı bulunamadı.")

        amount = money(amount if amount is not None else order.total_amount)
        if amount <= 0 or amount > money(order.total_amount):
            raise ValidationError("Geçersiz iade tutarı.")

        gateway = self.registry.get(order.payment_gateway) if order.payment_gateway else self.registry.active
        if gateway is None:
            raise ConfigurationError("Siparişin ödeme sağlayıcısı bulunamadı.")

        result = gateway.refund(order, amount, client_ip=client_ip)
        if not result.success:
            if result.error_code == "missing_reference":
                raise MissingReferenceError(result.error_message)
            raise UpstreamError(result.error_message or "İade başarısız")

        order.payment_status = PaymentStatus.REFUNDED.value
        if order.status != OrderStatus.DELIVERED.value:
            order.status = OrderStatus.CANCELLED.value
        self.wallets.reverse_pending(order)
        self.db.flush()

        logger.info(f"↩️ Order {order.order_number} refunded: {amount} ({result.refund_id})")
        return result
