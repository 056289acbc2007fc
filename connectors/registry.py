"""
Provider Registry - Ödeme ve kargo sağlayıcı seçimi
Aktif sağlayıcı ayarlardan bir kez çözülür
"""
import logging
from functools import lru_cache
from typing import Dict, Optional

from app.core.config import Settings, get_settings
from app.core.enums import PaymentGatewayKind, ShippingProviderKind
from .payment_base import PaymentGateway
from .iyzico_client import IyzicoClient
from .paytr_client import PayTRClient
from .hepsijet_client import HepsijetClient

logger = logging.getLogger(__name__)


class PaymentGatewayRegistry:
    """Ödeme adapter'ları (kind -> adapter)"""

    def __init__(self, gateways: Dict[PaymentGatewayKind, PaymentGateway], active_kind: PaymentGatewayKind):
        self._gateways = dict(gateways)
        self.active_kind = active_kind

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGatewayRegistry":
        active_kind = PaymentGatewayKind.parse(settings.payment_active_gateway)
        gateways = {
            PaymentGatewayKind.IYZICO: IyzicoClient(settings.iyzico_config()),
            PaymentGatewayKind.PAYTR: PayTRClient(settings.paytr_config()),
        }
        logger.info(f"Payment gateway: {active_kind.value}")
        return cls(gateways, active_kind)

    @property
    def active(self) -> Optional[PaymentGateway]:
        """Aktif adapter (ödeme kapalıysa None)"""
        return self._gateways.get(self.active_kind)

    @property
    def is_enabled(self) -> bool:
        return self.active is not None

    def get(self, kind) -> Optional[PaymentGateway]:
        if not isinstance(kind, PaymentGatewayKind):
            kind = PaymentGatewayKind.parse(kind)
        return self._gateways.get(kind)

    def available(self) -> Dict[str, str]:
        return {"iyzico": "Iyzico", "paytr": "PayTR"}


class ShippingCarrierRegistry:
    """Kargo adapter'ları"""

    def __init__(self, carriers: Dict[ShippingProviderKind, HepsijetClient], active_kind: ShippingProviderKind):
        self._carriers = dict(carriers)
        self.active_kind = active_kind

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShippingCarrierRegistry":
        active_kind = ShippingProviderKind.parse(settings.shipping_active_provider)
        carriers = {ShippingProviderKind.HEPSIJET: HepsijetClient(settings.hepsijet_config())}
        logger.info(f"Shipping provider: {active_kind.value}")
        return cls(carriers, active_kind)

    @property
    def active(self) -> Optional[HepsijetClient]:
        return self._carriers.get(self.active_kind)

    def get(self, kind) -> Optional[HepsijetClient]:
        if not isinstance(kind, ShippingProviderKind):
            kind = ShippingProviderKind.parse(kind)
        return self._carriers.get(kind)


@lru_cache()
def get_payment_registry() -> PaymentGatewayRegistry:
    return PaymentGatewayRegistry.from_settings(get_settings())


@lru_cache()
def get_shipping_registry() -> ShippingCarrierRegistry:
    return ShippingCarrierRegistry.from_settings(get_settings())
