"""Core module"""
from .config import Settings, get_settings, IyzicoConfig, PayTRConfig, HepsijetConfig
from .enums import (
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    OfferStatus,
    PaymentGatewayKind,
    ShippingProviderKind,
    PayoutStatus,
    WalletTransactionType,
    Direction,
    BalanceType,
)

__all__ = [
    "Settings",
    "get_settings",
    "IyzicoConfig",
    "PayTRConfig",
    "HepsijetConfig",
    "OrderStatus",
    "PaymentStatus",
    "ShippingStatus",
    "OfferStatus",
    "PaymentGatewayKind",
    "ShippingProviderKind",
    "PayoutStatus",
    "WalletTransactionType",
    "Direction",
    "BalanceType",
]
