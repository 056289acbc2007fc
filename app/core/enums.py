"""
Core Enums - Sipariş, ödeme, kargo ve cüzdan durumları
"""
from enum import Enum


class OrderStatus(str, Enum):
    """Sipariş durumları"""
    PENDING = "pending"          # Beklemede
    CONFIRMED = "confirmed"      # Onaylandı (ödeme alındı)
    PROCESSING = "processing"    # Hazırlanıyor
    SHIPPED = "shipped"          # Kargoya Verildi
    DELIVERED = "delivered"      # Teslim Edildi
    CANCELLED = "cancelled"      # İptal Edildi

    @property
    def label(self) -> str:
        return ORDER_STATUS_LABELS[self]

    def allowed_next(self) -> tuple:
        """Bu durumdan geçilebilecek durumlar"""
        return ORDER_TRANSITIONS.get(self, ())

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in self.allowed_next()


ORDER_STATUS_LABELS = {
    OrderStatus.PENDING: "Beklemede",
    OrderStatus.CONFIRMED: "Onaylandı",
    OrderStatus.PROCESSING: "Hazırlanıyor",
    OrderStatus.SHIPPED: "Kargoya Verildi",
    OrderStatus.DELIVERED: "Teslim Edildi",
    OrderStatus.CANCELLED: "İptal Edildi",
}

ORDER_TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (OrderStatus.SHIPPED,),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED,),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}


class PaymentStatus(str, Enum):
    """Ödeme durumları"""
    PENDING = "pending"      # Ödeme Bekleniyor
    PAID = "paid"            # Ödendi
    FAILED = "failed"        # Ödeme Başarısız
    REFUNDED = "refunded"    # İade Edildi


class ShippingStatus(str, Enum):
    """Kargo durumları (taşıyıcıdan normalize edilmiş)"""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    FAILED = "failed"


class OfferStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD_OUT = "sold_out"


class PaymentGatewayKind(str, Enum):
    """Ödeme sağlayıcıları"""
    IYZICO = "iyzico"
    PAYTR = "paytr"
    NONE = "none"

    @classmethod
    def parse(cls, value: str) -> "PaymentGatewayKind":
        """Bilinmeyen değerler NONE olarak kabul edilir"""
        if not value:
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NONE


class ShippingProviderKind(str, Enum):
    """Kargo sağlayıcıları"""
    HEPSIJET = "hepsijet"
    NONE = "none"

    @classmethod
    def parse(cls, value: str) -> "ShippingProviderKind":
        if not value:
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NONE


class PayoutStatus(str, Enum):
    """Ödeme talebi durumları"""
    PENDING = "pending"        # Beklemede
    APPROVED = "approved"      # Onaylandı
    COMPLETED = "completed"    # Tamamlandı
    REJECTED = "rejected"      # Reddedildi

    @classmethod
    def open_statuses(cls) -> list:
        """Henüz sonuçlanmamış talepler"""
        return [cls.PENDING.value, cls.APPROVED.value]


class WalletTransactionType(str, Enum):
    SALE = "sale"                        # Satış Geliri
    COMMISSION = "commission"            # Komisyon Kesintisi
    MARKETPLACE_FEE = "marketplace_fee"  # Pazaryeri Hizmet Bedeli
    WITHHOLDING = "withholding"          # Stopaj
    SHIPPING = "shipping"                # Kargo Masrafı
    RELEASE = "release"                  # Teslimat sonrası kullanılabilir bakiyeye geçiş
    WITHDRAWAL = "withdrawal"            # Para Çekme
    PAYOUT_REVERSAL = "payout_reversal"  # Reddedilen talep iadesi
    REFUND = "refund"                    # Sipariş iadesi


class Direction(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class BalanceType(str, Enum):
    PENDING = "pending"
    AVAILABLE = "available"
