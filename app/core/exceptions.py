"""Custom exceptions for the settlement service."""

from decimal import Decimal
from typing import Optional


class MarketplaceError(Exception):
    """Base exception for all settlement errors."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(MarketplaceError):
    """Provider credentials are missing or invalid. Not retryable."""

    code = "configuration"


class UpstreamError(MarketplaceError):
    """A provider HTTP call failed or returned a non-success payload."""

    code = "upstream"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class SignatureVerificationError(MarketplaceError):
    """Callback authenticity could not be established."""

    code = "signature"

    def __init__(self, message: str, source_ip: Optional[str] = None):
        self.source_ip = source_ip
        super().__init__(message)


class ValidationError(MarketplaceError):
    """A business rule was violated by the caller's input."""

    code = "validation"


class InsufficientBalanceError(ValidationError):
    """Raised when a payout exceeds the available wallet balance."""

    code = "insufficient_balance"

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Yetersiz bakiye. Talep: {requested:.2f} ₺, Mevcut: {available:.2f} ₺"
        )


class MissingReferenceError(MarketplaceError):
    """Refund attempted for an order without a stored payment reference."""

    code = "missing_reference"


class NotFoundError(MarketplaceError):
    code = "not_found"


class PermissionDeniedError(MarketplaceError):
    code = "forbidden"


class InvalidTransitionError(MarketplaceError):
    """Order or payout status change not allowed from the current state."""

    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Durum geçişi yapılamaz: {current} → {target}")
