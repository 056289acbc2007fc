"""Services module"""
from .commission import calculate_line, aggregate, resolve_rates, financial_breakdown
from .wallet_service import WalletService
from .payout_service import PayoutService
from .bank_accounts import BankAccountService, validate_iban_checksum
from .order_service import OrderService, CartLine
from .payment_service import PaymentService, CallbackOutcome
from .shipping_service import ShippingService

__all__ = [
    "calculate_line",
    "aggregate",
    "resolve_rates",
    "financial_breakdown",
    "WalletService",
    "PayoutService",
    "BankAccountService",
    "validate_iban_checksum",
    "OrderService",
    "CartLine",
    "PaymentService",
    "CallbackOutcome",
    "ShippingService",
]
