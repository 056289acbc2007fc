"""Database module"""
from .connection import Base, engine, get_db, SessionLocal
from .models import (
    Category,
    Product,
    Offer,
    Order,
    OrderItem,
    SellerWallet,
    WalletTransaction,
    BankAccount,
    PayoutRequest,
    ShippingLog,
)

__all__ = [
    "Base",
    "engine",
    "get_db",
    "SessionLocal",
    "Category",
    "Product",
    "Offer",
    "Order",
    "OrderItem",
    "SellerWallet",
    "WalletTransaction",
    "BankAccount",
    "PayoutRequest",
    "ShippingLog",
]
