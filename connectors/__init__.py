"""Connectors module"""
from .payment_base import (
    PaymentGateway,
    CallbackRequest,
    PaymentInitResult,
    PaymentResult,
    RefundResult,
)
from .iyzico_client import IyzicoClient
from .paytr_client import PayTRClient
from .hepsijet_client import (
    HepsijetClient,
    TokenCache,
    EndpointChain,
    ShipmentProduct,
    ShipmentResult,
    TrackingResult,
    LabelResult,
)
from .registry import (
    PaymentGatewayRegistry,
    ShippingCarrierRegistry,
    get_payment_registry,
    get_shipping_registry,
)

__all__ = [
    "PaymentGateway",
    "CallbackRequest",
    "PaymentInitResult",
    "PaymentResult",
    "RefundResult",
    "IyzicoClient",
    "PayTRClient",
    "HepsijetClient",
    "TokenCache",
    "EndpointChain",
    "ShipmentProduct",
    "ShipmentResult",
    "TrackingResult",
    "LabelResult",
    "PaymentGatewayRegistry",
    "ShippingCarrierRegistry",
    "get_payment_registry",
    "get_shipping_registry",
]
