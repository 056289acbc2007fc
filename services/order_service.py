"""
Order Service - Sipariş oluşturma, iptal ve durum geçişleri
Fiyat ve oranlar sipariş anında kaleme kopyalanır
"""
import logging
import random
import string
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Any
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import Order, OrderItem, Offer, Product
from app.core.config import Settings, get_settings
from app.core.enums import OrderStatus, OfferStatus, PaymentStatus
from app.core.exceptions import (
    ValidationError,
    NotFoundError,
    PermissionDeniedError,
    InvalidTransitionError,
)
from app.core.money import ZERO
from .commission import calculate_line, aggregate, resolve_rates, financial_breakdown
from .wallet_service import WalletService

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "EPZ"  # EczanePazarı


@dataclass
class CartLine:
    offer_id: int
    quantity: int


class OrderService:
    """Sipariş yaşam döngüsü"""

    def __init__(self, db: Session, settings: Optional[Settings] = None, wallet_service: Optional[WalletService] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.wallets = wallet_service or WalletService(db)

    # ========================================================================
    # CREATE
    # ========================================================================

    def generate_order_number(self, today: Optional[date] = None) -> str:
        """
        EPZ{yymmdd}{günlük sıra:04d}{4 rastgele harf/rakam}

        Örnek: EPZ2610190001K7QZ
        """
        today = today or datetime.now(timezone.utc).date()
        prefix = f"{ORDER_NUMBER_PREFIX}{today.strftime('%y%m%d')}"
        count = self.db.query(func.count(Order.id)).filter(Order.order_number.like(f"{prefix}%")).scalar() or 0
        suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
        return f"{prefix}{count + 1:04d}{suffix}"

    def create_order(
        self,
        buyer_id: int,
        lines: List[CartLine],
        shipping_address: Dict[str, Any],
        buyer_name: Optional[str] = None,
        buyer_email: Optional[str] = None,
        notes: Optional[str] = None,
        shipping_cost=ZERO,
    ) -> Order:
        """
        Sepet satırlarından sipariş oluşturur

        Her satır için teklif kontrol edilir (aktif, süresi geçmemiş, yeterli stok),
        stok düşülür, kesintiler hesaplanır.

        Raises:
            ValidationError: Boş sepet, geçersiz adet, stok/teklif sorunu
        """
        if not lines:
            raise ValidationError("Sepetiniz boş.")

        today = datetime.now(timezone.utc).date()
        prepared = []
        requested: Dict[int, int] = {}

        for line in lines:
            if line.quantity is None or line.quantity < 1:
                raise ValidationError(f"Geçersiz adet: {line.quantity}")

            offer = self.db.query(Offer).filter(Offer.id == line.offer_id).with_for_update().first()
            if offer is None:
                raise ValidationError(f"Teklif bulunamadı: {line.offer_id}")

            product: Product = offer.product
            product_name = product.name if product is not None else f"Ürün #{offer.product_id}"

            if offer.status != OfferStatus.ACTIVE.value:
                raise ValidationError(f"Ürün satışta değil: {product_name}")
            if offer.expiry_date is not None and offer.expiry_date < today:
                raise ValidationError(f"Son kullanma tarihi geçmiş: {product_name}")
            requested[offer.id] = requested.get(offer.id, 0) + line.quantity
            if offer.stock < requested[offer.id]:
                raise ValidationError(f"Stok yetersiz: {product_name}")

            rates = resolve_rates(product.category if product is not None else None, self.settings)
            split = calculate_line(
                offer.price,
                line.quantity,
                rates.commission_rate,
                rates.marketplace_fee_rate,
                rates.withholding_tax_rate,
            )
            prepared.append((offer, product_name, split))

        totals = aggregate([split for _, _, split in prepared], shipping_cost)

        order = Order(
            order_number=self.generate_order_number(today),
            buyer_id=buyer_id,
            buyer_name=buyer_name,
            buyer_email=buyer_email,
            subtotal=totals.subtotal,
            total_commission=totals.total_commission,
            shipping_cost=totals.shipping_cost,
            total_amount=totals.total_amount,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            shipping_address=shipping_address or {},
            notes=notes,
        )

        for offer, product_name, split in prepared:
            order.items.append(OrderItem(
                product_id=offer.product_id,
                offer_id=offer.id,
                seller_id=offer.seller_id,
                product_name=product_name,
                **split.as_dict(),
            ))

            offer.stock -= split.quantity
            if offer.stock <= 0:
                offer.stock = 0
                offer.status = OfferStatus.SOLD_OUT.value

        self.db.add(order)
        self.db.flush()

        logger.info(
            f"✅ Order created: {order.order_number} buyer={buyer_id} "
            f"items={len(order.items)} total={order.total_amount}"
        )
        return order

    # ========================================================================
    # READ
    # ========================================================================

    def get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise NotFoundError("Sipariş bulunamadı.")
        return order

    def get_buyer_order(self, order_id: int, buyer_id: int) -> Order:
        order = self.get_order(order_id)
        if order.buyer_id != buyer_id:
            raise PermissionDeniedError("Bu siparişe erişim yetkiniz yok.")
        return order

    def seller_order_view(self, order_id: int, seller_id: int) -> Dict[str, Any]:
        """
        Satıcıya ait kalemler + kesinti özeti

        Raises:
            NotFoundError: Sipariş yok
            PermissionDeniedError: Siparişte satıcıya ait kalem yok
        """
        order = self.get_order(order_id)
        items = order.items_for_seller(seller_id)
        if not items:
            raise PermissionDeniedError("Bu siparişe erişim yetkiniz yok.")

        return {
            'order_id': order.id,
            'order_number': order.order_number,
            'status': order.status,
            'status_label': OrderStatus(order.status).label,
            'payment_status': order.payment_status,
            'shipping_status': order.shipping_status,
            'tracking_number': order.tracking_number,
            'created_at': order.created_at,
            'items': [
                {
                    'id': item.id,
                    'product_id': item.product_id,
                    'product_name': item.product_name,
                    'quantity': item.quantity,
                    'unit_price': item.unit_price,
                    'total_price': item.total_price,
                    'commission_rate': item.commission_rate,
                    'commission_amount': item.commission_amount,
                    'marketplace_fee': item.marketplace_fee,
                    'withholding_tax': item.withholding_tax,
                    'shipping_cost_share': item.shipping_cost_share,
                    'net_seller_amount': item.net_seller_amount,
                    'seller_payout_amount': item.seller_payout_amount,
                }
                for item in items
            ],
            'financial_breakdown': financial_breakdown(items),
        }

    # ========================================================================
    # STATUS
    # ========================================================================

    def _restore_stock(self, order: Order):
        for item in order.items:
            offer = item.offer
            if offer is None:
                continue
            offer.stock += item.quantity
            if offer.status == OfferStatus.SOLD_OUT.value:
                offer.status = OfferStatus.ACTIVE.value

    def cancel_order(self, order: Order) -> Order:
        """
        Sipariş iptali (yalnızca pending / confirmed)

        Stok geri yüklenir, aktarılmamış satıcı tutarları geri alınır.
        """
        current = OrderStatus(order.status)
        if not current.can_transition_to(OrderStatus.CANCELLED):
            raise InvalidTransitionError(order.status, OrderStatus.CANCELLED.value)

        self._restore_stock(order)
        if order.payment_status == PaymentStatus.PAID.value:
            self.wallets.reverse_pending(order)

        order.status = OrderStatus.CANCELLED.value
        self.db.flush()

        logger.info(f"🚫 Order cancelled: {order.order_number}")
        return order

    def transition(self, order: Order, new_status) -> Order:
        """
        Durum geçişi (durum grafiğine göre)

        shipped -> shipped_at, delivered -> delivered_at + satıcı bakiyeleri aktarılır
        """
        target = OrderStatus(new_status)

        if target == OrderStatus.CANCELLED:
            return self.cancel_order(order)

        current = OrderStatus(order.status)
        if not current.can_transition_to(target):
            raise InvalidTransitionError(order.status, target.value)

        now = datetime.now(timezone.utc)
        order.status = target.value

        if target == OrderStatus.SHIPPED and order.shipped_at is None:
            order.shipped_at = now
        elif target == OrderStatus.DELIVERED:
            order.delivered_at = now
            order.shipping_status = "delivered"
            if order.payment_status == PaymentStatus.PAID.value:
                self.wallets.release_order(order)

        self.db.flush()
        logger.info(f"Order {order.order_number}: {current.value} → {target.value}")
        return order
