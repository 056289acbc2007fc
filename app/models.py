"""
Pydantic Models - Request/Response schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, List, Any
from datetime import datetime
from decimal import Decimal


# ============================================================================
# REQUEST MODELS
# ============================================================================

class CartLineRequest(BaseModel):
    """Sepet satırı"""
    offer_id: int = Field(..., description="Teklif ID")
    quantity: int = Field(..., ge=1, description="Adet")


class ShippingAddress(BaseModel):
    """Teslimat adresi"""
    name: str = Field(..., description="Alıcı / eczane adı")
    phone: Optional[str] = None
    city: str
    district: Optional[str] = None
    address: str
    postal_code: Optional[str] = None


class CreateOrderRequest(BaseModel):
    """Sipariş oluşturma isteği (sepet satırları ile)"""
    items: List[CartLineRequest] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)


class InitializePaymentRequest(BaseModel):
    order_id: int


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, description="Boş ise sipariş toplamı")


class SenderInfo(BaseModel):
    """Gönderici (satıcı) bilgileri"""
    name: str
    phone: Optional[str] = ""
    email: Optional[str] = ""
    city: str
    district: Optional[str] = ""
    address: str


class CreateShipmentRequest(BaseModel):
    sender: SenderInfo
    payment_type: Optional[str] = Field(None, description="sender_pays / receiver_pays")


class CancelShipmentRequest(BaseModel):
    reason: Optional[str] = None


class PayoutRequestCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    bank_account_id: int
    notes: Optional[str] = Field(None, max_length=500)


class BankAccountCreate(BaseModel):
    bank_name: str = Field(..., min_length=1, max_length=100)
    iban: str = Field(..., min_length=15, max_length=42)
    account_holder: str = Field(..., min_length=1, max_length=255)
    swift_code: Optional[str] = Field(None, max_length=11)
    is_default: bool = False


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., description="confirmed / processing / shipped / delivered / cancelled")


class AdminPayoutAction(BaseModel):
    admin_id: Optional[int] = None
    notes: Optional[str] = None
    transaction_reference: Optional[str] = None


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class HealthResponse(BaseModel):
    """Sağlık kontrolü"""
    status: str
    timestamp: datetime
    database_connection: str
    payment_gateway: str
    shipping_provider: str
    version: str


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    offer_id: Optional[int] = None
    seller_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    commission_rate: Decimal
    commission_amount: Decimal


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    buyer_id: int
    subtotal: Decimal
    total_commission: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    status: str
    payment_status: str
    payment_gateway: Optional[str] = None
    shipping_address: Dict[str, Any] = {}
    notes: Optional[str] = None
    shipping_provider: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_status: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class PaymentInitResponse(BaseModel):
    success: bool
    gateway: str
    payment_url: Optional[str] = None
    checkout_html: Optional[str] = None
    transaction_id: Optional[str] = None


class RefundResponse(BaseModel):
    success: bool
    refund_id: Optional[str] = None
    refunded_amount: Optional[Decimal] = None


class WalletResponse(BaseModel):
    seller_id: int
    balance: Decimal
    pending_balance: Decimal
    total_balance: Decimal
    withdrawn_balance: Decimal
    total_earned: Decimal
    total_commission: Decimal


class WalletTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    amount: Decimal
    direction: str
    balance_type: str
    description: Optional[str] = None
    order_id: Optional[int] = None
    payout_request_id: Optional[int] = None
    created_at: Optional[datetime] = None


class BankAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bank_name: str
    iban: str
    account_holder: str
    swift_code: Optional[str] = None
    is_default: bool


class PayoutRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    seller_id: int
    bank_account_id: Optional[int] = None
    amount: Decimal
    status: str
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    transaction_reference: Optional[str] = None
    created_at: Optional[datetime] = None


class ShipmentResponse(BaseModel):
    success: bool
    message: str
    tracking_number: Optional[str] = None
    barcode: Optional[str] = None
    status: Optional[str] = None


class TrackingResponse(BaseModel):
    success: bool
    message: str
    status: str
    carrier_status: Optional[str] = None
    description: Optional[str] = None
    tracking_number: Optional[str] = None
    events: List[Any] = []


class LabelResponse(BaseModel):
    success: bool
    message: str
    format: Optional[str] = None
    content_type: Optional[str] = None
    label: Optional[str] = None
    label_url: Optional[str] = None
    barcode: Optional[str] = None
