"""API module"""
# Import all routers
from . import health, orders, payments, shipping, wallet, admin

__all__ = ["health", "orders", "payments", "shipping", "wallet", "admin"]
