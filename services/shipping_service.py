"""
Shipping Service - Kargo gönderisi, iptal, takip ve etiket
Her taşıyıcı çağrısı ShippingLog tablosuna yazılır
"""
import logging
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from database import Order, ShippingLog
from app.core.enums import OrderStatus, ShippingStatus
from app.core.exceptions import ConfigurationError, NotFoundError, PermissionDeniedError, ValidationError
from connectors.hepsijet_client import ShipmentProduct, ShipmentResult, TrackingResult, LabelResult
from connectors.registry import ShippingCarrierRegistry
from .order_service import OrderService

logger = logging.getLogger(__name__)

SHIPPABLE_STATUSES = (OrderStatus.CONFIRMED.value, OrderStatus.PROCESSING.value)


class ShippingService:
    """Sipariş kargo işlemleri"""

    def __init__(self, db: Session, registry: ShippingCarrierRegistry, order_service: Optional[OrderService] = None):
        self.db = db
        self.registry = registry
        self.orders = order_service or OrderService(db)

    def _carrier(self):
        carrier = self.registry.active
        if carrier is None or not carrier.is_available():
            raise ConfigurationError("Kargo entegrasyonu aktif değil.")
        return carrier

    def _get_order(self, order_id: int, seller_id: Optional[int] = None) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise NotFoundError("Sipariş bulunamadı.")
        if seller_id is not None and not order.items_for_seller(seller_id):
            raise PermissionDeniedError("Bu siparişe erişim yetkiniz yok.")
        return order

    def _log(self, order: Order, provider: str, action: str, request: Dict[str, Any],
             success: bool, status_code: int, response: Dict[str, Any], error: Optional[str] = None) -> ShippingLog:
        entry = ShippingLog(
            order_id=order.id,
            provider=provider,
            action=action,
            request=request,
            response=response,
            status="success" if success else "failed",
            error=None if success else error,
            response_code=status_code,
        )
        self.db.add(entry)
        return entry

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def create_shipment(self, order_id: int, seller_id: Optional[int], sender: Dict[str, Any],
                        payment_type: Optional[str] = None) -> ShipmentResult:
        """
        Sipariş için kargo kaydı oluşturur

        Raises:
            ValidationError: Sipariş kargoya uygun değil veya zaten gönderilmiş
            ConfigurationError: Kargo sağlayıcısı kapalı
        """
        order = self._get_order(order_id, seller_id)

        if order.status not in SHIPPABLE_STATUSES:
            raise ValidationError("Sipariş kargoya verilmeye uygun değil.")
        if order.tracking_number:
            raise ValidationError("Bu sipariş için zaten kargo kaydı oluşturulmuş.")

        carrier = self._carrier()
        items = order.items_for_seller(seller_id) if seller_id is not None else list(order.items)

        products = []
        for item in items:
            product = item.product
            products.append(ShipmentProduct(
                name=item.product_name or (product.name if product is not None else "Ürün"),
                quantity=item.quantity,
                desi=Decimal(str(product.desi)) if product is not None and product.desi is not None else Decimal("1"),
                weight_grams=(Decimal(str(product.weight_grams))
                              if product is not None and product.weight_grams is not None else Decimal("1000")),
            ))

        receiver = dict(order.shipping_address or {})
        receiver.setdefault("name", order.buyer_name or "")

        result = carrier.create_shipment(order.order_number, sender, receiver, products, payment_type=payment_type)
        self._log(order, carrier.name, "create", result.request, result.success, result.status_code,
                  result.raw, result.message)

        if result.success:
            order.shipping_provider = carrier.name
            order.tracking_number = result.tracking_number
            order.barcode = result.barcode
            order.shipping_status = ShippingStatus.PROCESSING.value
            self.orders.transition(order, OrderStatus.SHIPPED)
            logger.info(f"🚚 Shipment created for {order.order_number}: {result.tracking_number}")
        else:
            logger.error(f"❌ Shipment failed for {order.order_number}: {result.message}")

        self.db.flush()
        return result

    def cancel_shipment(self, order_id: int, seller_id: Optional[int] = None,
                        reason: Optional[str] = None) -> ShipmentResult:
        order = self._get_order(order_id, seller_id)
        if not order.tracking_number:
            raise ValidationError("Bu sipariş için kargo kaydı yok.")
        if order.status == OrderStatus.DELIVERED.value:
            raise ValidationError("Teslim edilmiş gönderi iptal edilemez.")

        carrier = self._carrier()
        kwargs = {"delivery_no": order.tracking_number, "customer_order_id": order.order_number}
        if reason:
            kwargs["reason"] = reason
        result = carrier.cancel_shipment(**kwargs)
        self._log(order, carrier.name, "cancel", result.request, result.success, result.status_code,
                  result.raw, result.message)

        if result.success:
            # Kargo kaydı geri alındı, sipariş yeniden gönderilebilir
            order.shipping_status = ShippingStatus.CANCELLED.value
            order.tracking_number = None
            order.barcode = None
            order.shipping_label_url = None
            if order.status == OrderStatus.SHIPPED.value:
                order.status = OrderStatus.CONFIRMED.value
                order.shipped_at = None
            logger.info(f"🚫 Shipment cancelled for {order.order_number}")

        self.db.flush()
        return result

    def track_shipment(self, order_id: int, seller_id: Optional[int] = None) -> TrackingResult:
        """Takip bilgisini çeker, teslim edildiyse siparişi delivered yapar"""
        order = self._get_order(order_id, seller_id)
        if not order.tracking_number:
            raise ValidationError("Bu sipariş için kargo kaydı yok.")

        carrier = self._carrier()
        result = carrier.track_shipment(delivery_no=order.tracking_number, barcode=order.barcode,
                                        customer_order_id=order.order_number)
        self._log(order, carrier.name, "track", {"deliveryNo": order.tracking_number}, result.success,
                  result.status_code, result.raw, result.message)

        if result.success:
            order.shipping_status = result.status.value
            if result.status == ShippingStatus.DELIVERED and order.status == OrderStatus.SHIPPED.value:
                self.orders.transition(order, OrderStatus.DELIVERED)

        self.db.flush()
        return result

    def get_label(self, order_id: int, seller_id: Optional[int] = None) -> LabelResult:
        order = self._get_order(order_id, seller_id)
        barcode = order.barcode or order.tracking_number
        if not barcode:
            raise ValidationError("Bu sipariş için kargo kaydı yok.")

        carrier = self._carrier()
        items = order.items_for_seller(seller_id) if seller_id is not None else list(order.items)
        total_parcel = sum(item.quantity for item in items) or 1

        result = carrier.get_label(barcode, total_parcel)
        response = {k: v for k, v in asdict(result).items() if k != "label"}
        self._log(order, carrier.name, "label", {"barcode": barcode, "totalParcel": total_parcel},
                  result.success, result.status_code, response, result.message)

        if result.success and result.label_url:
            order.shipping_label_url = result.label_url

        self.db.flush()
        return result
