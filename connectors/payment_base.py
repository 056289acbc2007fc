"""
Payment Gateway Interface - Tüm ödeme sağlayıcıları için ortak sözleşme
"""
import base64
import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from app.core.enums import PaymentGatewayKind


@dataclass
class CallbackRequest:
    """Sağlayıcıdan gelen callback (framework'ten bağımsız)"""
    form: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    raw_body: bytes = b""
    client_ip: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.form.get(key, default)

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass
class PaymentInitResult:
    success: bool
    payment_url: Optional[str] = None
    checkout_html: Optional[str] = None
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, payment_url: str = None, checkout_html: str = None, transaction_id: str = None) -> "PaymentInitResult":
        return cls(True, payment_url=payment_url, checkout_html=checkout_html, transaction_id=transaction_id)

    @classmethod
    def failure(cls, message: str, error_code: str = "unexpected") -> "PaymentInitResult":
        return cls(False, error_message=message, error_code=error_code)


@dataclass
class PaymentResult:
    """
    Callback sonucu

    status: completed | failed | pending
    signature_valid=False ise sonuç güvenilmezdir ve hiçbir kayıt değiştirilmemelidir
    """
    status: str
    transaction_id: Optional[str] = None
    order_reference: Optional[str] = None
    paid_amount: Optional[Decimal] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    signature_valid: bool = True
    raw: Dict[str, Any] = field(default_factory=dict)

    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"

    @property
    def is_completed(self) -> bool:
        return self.status == self.COMPLETED

    @classmethod
    def completed(cls, transaction_id: str, order_reference: str, paid_amount: Optional[Decimal],
                  raw: Dict[str, Any] = None) -> "PaymentResult":
        return cls(cls.COMPLETED, transaction_id=transaction_id, order_reference=order_reference,
                   paid_amount=paid_amount, raw=raw or {})

    @classmethod
    def failed(cls, message: str, error_code: str = "upstream", order_reference: str = None,
               raw: Dict[str, Any] = None) -> "PaymentResult":
        return cls(cls.FAILED, order_reference=order_reference, error_message=message,
                   error_code=error_code, raw=raw or {})

    @classmethod
    def rejected(cls, message: str, raw: Dict[str, Any] = None) -> "PaymentResult":
        """İmza doğrulanamadı"""
        return cls(cls.FAILED, error_message=message, error_code="signature",
                   signature_valid=False, raw=raw or {})


@dataclass
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    refunded_amount: Optional[Decimal] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, refund_id: str, refunded_amount: Decimal) -> "RefundResult":
        return cls(True, refund_id=refund_id, refunded_amount=refunded_amount)

    @classmethod
    def failure(cls, message: str, error_code: str = "upstream") -> "RefundResult":
        return cls(False, error_message=message, error_code=error_code)


def hmac_sha256_b64(message: str, key: str) -> str:
    """base64(HMAC-SHA256(message, key))"""
    digest = hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def signatures_match(expected: str, received: Optional[str]) -> bool:
    """Sabit zamanlı karşılaştırma"""
    if not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


class PaymentGateway(ABC):
    """Ödeme sağlayıcı adapter'ı"""

    kind: PaymentGatewayKind = PaymentGatewayKind.NONE

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    def initialize(self, order, client_ip: Optional[str] = None) -> PaymentInitResult:
        """Ödeme oturumu başlatır"""

    @abstractmethod
    def get_checkout_html(self, order, client_ip: Optional[str] = None) -> str:
        """Ödeme formu / iframe HTML'i"""

    @abstractmethod
    def handle_callback(self, request: CallbackRequest) -> PaymentResult:
        """Callback'i doğrular ve yorumlar"""

    @abstractmethod
    def refund(self, order, amount: Decimal, client_ip: Optional[str] = None) -> RefundResult:
        """Ödenmiş siparişi iade eder"""
