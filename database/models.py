"""
Database Models - Katalog, sipariş, cüzdan ve kargo kayıtları
Parasal alanlar Numeric(12, 2) -> Decimal
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, Text, Boolean, Index, ForeignKey, JSON
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from decimal import Decimal

from .connection import Base

MONEY = Numeric(12, 2)
RATE = Numeric(5, 2)


# ============================================================================
# KATALOG
# ============================================================================

class Category(Base):
    """
    Kategori - komisyon oranı sipariş anında buradan okunur ve
    OrderItem'a kopyalanır (sonraki değişiklikler eski siparişleri etkilemez)
    """
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    commission_rate = Column(RATE, nullable=False, default=Decimal("0"))

    # Kategori bazlı kesinti oranları (NULL = genel ayar kullanılır)
    marketplace_fee_rate = Column(RATE, nullable=True)
    withholding_tax_rate = Column(RATE, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    products = relationship("Product", back_populates="category")


class Product(Base):
    """Ürün tablosu - kargo için ağırlık ve desi bilgisi"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)

    name = Column(String(500), nullable=False)
    brand = Column(String(200))
    barcode = Column(String(100), index=True)

    weight_grams = Column(Numeric(10, 2), default=Decimal("1000"))
    desi = Column(Numeric(10, 2), default=Decimal("1"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    offers = relationship("Offer", back_populates="product")


class Offer(Base):
    """Satıcının bir ürün için fiyat/stok ilanı"""
    __tablename__ = "offers"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    seller_id = Column(Integer, nullable=False, index=True)

    price = Column(MONEY, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    expiry_date = Column(Date, nullable=True)  # Son kullanma tarihi
    status = Column(String(20), nullable=False, default="active", index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    product = relationship("Product", back_populates="offers")

    __table_args__ = (
        Index('idx_offer_seller_status', 'seller_id', 'status'),
    )


# ============================================================================
# SİPARİŞ
# ============================================================================

class Order(Base):
    """
    Sipariş tablosu - sipariş seviyesindeki toplamlar
    Satıcı bazlı kırılım OrderItem'larda
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, index=True, nullable=False)

    # Alıcı (kimlik doğrulama dış sistemde)
    buyer_id = Column(Integer, nullable=False, index=True)
    buyer_name = Column(String(255))
    buyer_email = Column(String(255))

    # Financial - ORDER LEVEL
    subtotal = Column(MONEY, nullable=False, default=Decimal("0"))
    total_commission = Column(MONEY, nullable=False, default=Decimal("0"))
    shipping_cost = Column(MONEY, nullable=False, default=Decimal("0"))
    total_amount = Column(MONEY, nullable=False, default=Decimal("0"))

    # Status
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    payment_gateway = Column(String(20))
    payment_reference = Column(String(100), index=True)

    shipping_address = Column(JSON, nullable=False, default=dict)
    notes = Column(Text)

    # Kargo bilgileri
    shipping_provider = Column(String(50))
    tracking_number = Column(String(100), index=True)
    barcode = Column(String(100))
    shipping_status = Column(String(30))
    shipping_label_url = Column(String(500))
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))

    # Satıcı bakiyelerinin kullanılabilir bakiyeye aktarıldığı an
    funds_released_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_order_status_payment', 'status', 'payment_status'),
    )

    def seller_ids(self) -> list:
        """Siparişteki satıcılar (ilk görülme sırasıyla)"""
        seen = []
        for item in self.items:
            if item.seller_id not in seen:
                seen.append(item.seller_id)
        return seen

    def items_for_seller(self, seller_id: int) -> list:
        return [item for item in self.items if item.seller_id == seller_id]


class OrderItem(Base):
    """
    Sipariş kalemi - fiyat ve oranlar sipariş anındaki değerlerin kopyasıdır

    total_price = unit_price * quantity
    net_seller_amount = total_price - commission_amount
    seller_payout_amount = net_seller_amount - withholding_tax - marketplace_fee
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    offer_id = Column(Integer, ForeignKey("offers.id"), nullable=True)
    seller_id = Column(Integer, nullable=False, index=True)

    product_name = Column(String(500))

    quantity = Column(Integer, nullable=False)
    unit_price = Column(MONEY, nullable=False)
    total_price = Column(MONEY, nullable=False)

    commission_rate = Column(RATE, nullable=False, default=Decimal("0"))
    commission_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    marketplace_fee = Column(MONEY, nullable=False, default=Decimal("0"))     # Pazaryeri hizmet bedeli
    withholding_tax = Column(MONEY, nullable=False, default=Decimal("0"))     # Stopaj
    shipping_cost_share = Column(MONEY, nullable=False, default=Decimal("0"))  # Kargo payı
    net_seller_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    seller_payout_amount = Column(MONEY, nullable=False, default=Decimal("0"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    offer = relationship("Offer")

    __table_args__ = (
        Index('idx_item_order_seller', 'order_id', 'seller_id'),
    )


# ============================================================================
# CÜZDAN / HAKEDİŞ
# ============================================================================

class SellerWallet(Base):
    """Satıcı cüzdanı - balance kullanılabilir bakiyedir, asla negatif olamaz"""
    __tablename__ = "seller_wallets"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, unique=True, index=True, nullable=False)

    balance = Column(MONEY, nullable=False, default=Decimal("0"))
    pending_balance = Column(MONEY, nullable=False, default=Decimal("0"))
    withdrawn_balance = Column(MONEY, nullable=False, default=Decimal("0"))
    total_earned = Column(MONEY, nullable=False, default=Decimal("0"))
    total_commission = Column(MONEY, nullable=False, default=Decimal("0"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship("WalletTransaction", back_populates="wallet", order_by="WalletTransaction.id.desc()")

    @property
    def total_balance(self) -> Decimal:
        return (self.balance or Decimal("0")) + (self.pending_balance or Decimal("0"))


class WalletTransaction(Base):
    """Cüzdan hareketleri (defter)"""
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("seller_wallets.id"), nullable=False, index=True)

    type = Column(String(30), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    direction = Column(String(10), nullable=False)       # credit / debit
    balance_type = Column(String(10), nullable=False)    # pending / available
    description = Column(String(500))

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=True, index=True)
    payout_request_id = Column(Integer, ForeignKey("payout_requests.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    wallet = relationship("SellerWallet", back_populates="transactions")

    __table_args__ = (
        Index('idx_wallet_tx_order', 'wallet_id', 'order_id', 'type'),
    )

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.direction == "credit" else -self.amount


class BankAccount(Base):
    """Satıcı banka hesabı - IBAN kayıt anında doğrulanır"""
    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, nullable=False, index=True)

    bank_name = Column(String(100), nullable=False)
    iban = Column(String(34), nullable=False)
    account_holder = Column(String(255), nullable=False)
    swift_code = Column(String(11))
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PayoutRequest(Base):
    """Satıcı ödeme talebi"""
    __tablename__ = "payout_requests"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, nullable=False, index=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id", ondelete="SET NULL"), nullable=True)

    amount = Column(MONEY, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    notes = Column(Text)
    admin_notes = Column(Text)
    processed_by = Column(Integer)
    processed_at = Column(DateTime(timezone=True))
    transaction_reference = Column(String(100))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    bank_account = relationship("BankAccount")


# ============================================================================
# KARGO LOG
# ============================================================================

class ShippingLog(Base):
    """Taşıyıcı API çağrılarının kaydı"""
    __tablename__ = "shipping_logs"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    provider = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)  # create / cancel / track / label
    request = Column(JSON)
    response = Column(JSON)
    status = Column(String(20), nullable=False, default="pending")
    error = Column(Text)
    response_code = Column(Integer)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_shipping_log_order_action', 'order_id', 'action'),
    )
