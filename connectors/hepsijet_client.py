"""
Hepsijet Kargo Connector
Token cache, desi bazlı gönderi oluşturma, iptal, takip ve etiket
"""
import base64
import requests
import logging
import time
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from app.core.config import HepsijetConfig
from app.core.enums import ShippingProviderKind, ShippingStatus
from app.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

# Desi toplamı bu değer ve üzeriyse XL (TMH) gönderi
XL_DESI_THRESHOLD = Decimal("41")
MIN_PARCEL_DESI = Decimal("1")
MIN_PARCEL_WEIGHT_GRAMS = Decimal("1000")
DEFAULT_TOKEN_TTL = 3600

STANDARD_ENDPOINT = "/delivery/sendDeliveryOrderEnhanced"
XL_ENDPOINT = "/delivery/sendDeliveryOrder"
TRACKING_ENDPOINTS = (
    "/deliveryTransaction/getDeliveryTracking",
    "/delivery/integration/track",
)

# ============================================================================
# RESPONSE FIELD PRECEDENCE - soldan sağa ilk dolu alan kullanılır
# ============================================================================

TOKEN_FIELDS = ("token", "access_token", "accessToken")
EXPIRES_FIELDS = ("expires_in", "expiresIn")
DELIVERY_NO_FIELDS = ("deliveryNo", "delivery_no")
BARCODE_FIELDS = ("barcode",)
STATUS_FIELDS = ("status", "Status")
STATUS_DESCRIPTION_FIELDS = ("statusDescription", "status_description")
EVENTS_FIELDS = ("events", "Events")
TRACKING_EVENTS_FIELDS = ("trackingEvents", "tracking_events")
ERROR_MESSAGE_FIELDS = ("message", "error", "errorMessage")
CANCEL_SUCCESS_FIELDS = ("success", "isSuccess")
LABEL_URL_FIELDS = ("labelUrl", "label_url")

PAYMENT_TYPES = {
    "sender_pays": "SENDER_PAYS",
    "Gonderici_Odeyecek": "SENDER_PAYS",
    "receiver_pays": "RECEIVER_PAYS",
    "Alici_Odeyecek": "RECEIVER_PAYS",
}

CARRIER_STATUS_MAP = {
    "delivered": ShippingStatus.DELIVERED,
    "teslim edildi": ShippingStatus.DELIVERED,
    "in_transit": ShippingStatus.IN_TRANSIT,
    "yolda": ShippingStatus.IN_TRANSIT,
    "transfer": ShippingStatus.IN_TRANSIT,
    "out_for_delivery": ShippingStatus.OUT_FOR_DELIVERY,
    "dağıtımda": ShippingStatus.OUT_FOR_DELIVERY,
    "shipped": ShippingStatus.SHIPPED,
    "kargoya verildi": ShippingStatus.SHIPPED,
    "returned": ShippingStatus.RETURNED,
    "iade": ShippingStatus.RETURNED,
    "cancelled": ShippingStatus.CANCELLED,
    "iptal": ShippingStatus.CANCELLED,
}


def first_present(data: Dict[str, Any], fields: Sequence[str], default: Any = None) -> Any:
    """İlk dolu alanın değeri"""
    if not isinstance(data, dict):
        return default
    for name in fields:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return default


def map_carrier_status(status: Optional[str]) -> ShippingStatus:
    """Taşıyıcı durumunu iç kargo durumuna çevirir (bilinmeyen -> pending)"""
    if not status:
        return ShippingStatus.PENDING
    return CARRIER_STATUS_MAP.get(str(status).strip().lower(), ShippingStatus.PENDING)


def map_payment_type(value: Optional[str]) -> str:
    return PAYMENT_TYPES.get(value or "", "SENDER_PAYS")


# ============================================================================
# VALUE OBJECTS
# ============================================================================

@dataclass
class ShipmentProduct:
    name: str
    quantity: int = 1
    desi: Decimal = Decimal("1")
    weight_grams: Decimal = Decimal("1000")


@dataclass
class ShipmentResult:
    success: bool
    status_code: int
    message: str
    tracking_number: Optional[str] = None
    barcode: Optional[str] = None
    delivery_no: Optional[str] = None
    status: Optional[str] = None
    endpoint: Optional[str] = None
    request: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TrackingResult:
    success: bool
    status_code: int
    message: str
    status: ShippingStatus = ShippingStatus.PENDING
    carrier_status: Optional[str] = None
    description: Optional[str] = None
    tracking_number: Optional[str] = None
    delivery_no: Optional[str] = None
    events: List[Any] = field(default_factory=list)
    tracking_events: List[Any] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LabelResult:
    success: bool
    status_code: int
    message: str
    label: Optional[str] = None           # base64 içerik
    label_url: Optional[str] = None
    content_type: Optional[str] = None
    format: Optional[str] = None          # pdf / image / zpl / url
    barcode: Optional[str] = None


# ============================================================================
# TOKEN CACHE
# ============================================================================

class TokenCache:
    """Process içi token cache (token, expires_at epoch)"""

    def __init__(self):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Tuple[str, float]]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, token: str, expires_at: float):
        with self._lock:
            self._entries[key] = (token, expires_at)

    def clear(self, key: str):
        with self._lock:
            self._entries.pop(key, None)


class EndpointChain:
    """
    Sıralı endpoint denemesi - ilk başarılı yanıt kazanır

    call(endpoint) requests.Response döndürmeli; başarısız yanıt veya
    bağlantı hatası bir sonraki endpoint'e geçirir
    """

    def __init__(self, endpoints: Sequence[str]):
        self.endpoints = tuple(endpoints)

    def run(self, call: Callable[[str], requests.Response]) -> Tuple[str, requests.Response]:
        last_error: Optional[UpstreamError] = None

        for endpoint in self.endpoints:
            try:
                response = call(endpoint)
            except requests.exceptions.RequestException as e:
                logger.warning(f"Hepsijet {endpoint} connection error: {e}")
                last_error = UpstreamError(str(e))
                continue

            if response.ok:
                return endpoint, response

            logger.warning(f"Hepsijet {endpoint} HTTP {response.status_code}, trying next endpoint")
            last_error = UpstreamError(
                _error_message(response, "Takip yapılamadı"),
                status_code=response.status_code,
                body=response.text,
            )

        raise last_error or UpstreamError("Endpoint listesi boş")


def _safe_json(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_message(response: requests.Response, default: str) -> str:
    return str(first_present(_safe_json(response), ERROR_MESSAGE_FIELDS, default))


# ============================================================================
# CLIENT
# ============================================================================

class HepsijetClient:
    """Hepsijet REST API client"""

    kind = ShippingProviderKind.HEPSIJET
    token_cache_key = "hepsijet_token"

    def __init__(
        self,
        config: HepsijetConfig,
        session: Optional[requests.Session] = None,
        token_cache: Optional[TokenCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.api_url = config.api_url.strip().rstrip('/')
        self.session = session or requests.Session()
        self.token_cache = token_cache or TokenCache()
        self.clock = clock

        logger.info(f"HepsijetClient initialized: {self.api_url}")

    @property
    def name(self) -> str:
        return self.kind.value

    def is_available(self) -> bool:
        return self.config.is_available

    # ========================================================================
    # TOKEN
    # ========================================================================

    def get_token(self) -> Optional[str]:
        """
        Geçerli token'ı döndürür, gerekirse yenisini alır

        GET /auth/getToken (Basic api_key:api_secret)
        expires_at = now + expires_in - safety margin

        Returns:
            Token veya None (kimlik bilgisi eksik / API hatası)
        """
        cached = self.token_cache.get(self.token_cache_key)
        if cached and self.clock() < cached[1]:
            return cached[0]

        if not self.config.api_key or not self.config.api_secret:
            logger.error("❌ Hepsijet: API credentials eksik")
            return None

        auth_string = base64.b64encode(
            f"{self.config.api_key}:{self.config.api_secret}".encode("utf-8")
        ).decode("ascii")

        try:
            response = self.session.get(
                f"{self.api_url}/auth/getToken",
                headers={"accept": "application/json", "authorization": f"Basic {auth_string}"},
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Hepsijet: Token alma hatası: {e}")
            return None

        if not response.ok:
            logger.error(f"❌ Hepsijet: Token alınamadı (HTTP {response.status_code}): {response.text[:300]}")
            return None

        data = _safe_json(response)
        token = first_present(data, TOKEN_FIELDS)
        if not token:
            logger.error(f"❌ Hepsijet: Token yanıtında token alanı yok: {list(data.keys())}")
            return None

        try:
            expires_in = int(first_present(data, EXPIRES_FIELDS, DEFAULT_TOKEN_TTL))
        except (TypeError, ValueError):
            expires_in = DEFAULT_TOKEN_TTL

        expires_at = self.clock() + expires_in - self.config.token_safety_margin_seconds
        self.token_cache.set(self.token_cache_key, token, expires_at)
        logger.info(f"✅ Hepsijet token alındı (expires_in={expires_in}s)")
        return token

    def _headers(self, token: str, accept: str = "application/json") -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "accept": accept,
        }

    # ========================================================================
    # SHIPMENT
    # ========================================================================

    @staticmethod
    def build_parcels(products: List[ShipmentProduct]) -> Tuple[List[Dict[str, Any]], Decimal, Decimal]:
        """
        Her adet için bir parcel

        Returns:
            (parcels, toplam desi, toplam ağırlık gram)
        """
        parcels = []
        total_desi = Decimal("0")
        total_weight = Decimal("0")

        for product in products:
            quantity = int(product.quantity or 1)
            desi = Decimal(str(product.desi if product.desi is not None else 1))
            weight = Decimal(str(product.weight_grams if product.weight_grams is not None else 1000))

            total_desi += quantity * desi
            total_weight += quantity * weight

            for _ in range(quantity):
                parcels.append({
                    "desi": float(max(desi, MIN_PARCEL_DESI)),
                    "weight": float(max(weight, MIN_PARCEL_WEIGHT_GRAMS)),
                    "content": product.name or "Ürün",
                })

        if not parcels:
            parcels.append({
                "desi": float(max(total_desi, MIN_PARCEL_DESI)),
                "weight": float(max(total_weight, MIN_PARCEL_WEIGHT_GRAMS)),
                "content": "Gönderi",
            })

        return parcels, total_desi, total_weight

    @staticmethod
    def _party(info: Dict[str, Any], with_email: bool = False) -> Dict[str, Any]:
        party = {
            "name": info.get("name", ""),
            "address": {
                "city": {"name": info.get("city", "")},
                "town": {"name": info.get("district", "")},
                "district": {"name": ""},
                "addressLine1": info.get("address", ""),
                "addressLine2": "",
            },
            "phone": info.get("phone", ""),
        }
        if with_email:
            party["email"] = info.get("email", "")
        return party

    def build_shipment_request(
        self,
        order_code: str,
        sender: Dict[str, Any],
        receiver: Dict[str, Any],
        products: List[ShipmentProduct],
        payment_type: Optional[str] = None,
        invoice_number: Optional[str] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        """Endpoint ve request body (desi eşiğine göre)"""
        parcels, total_desi, _ = self.build_parcels(products)

        payload = {
            "customerOrderId": order_code,
            "sender": self._party(sender, with_email=True),
            "receiver": self._party(receiver),
            "parcels": parcels,
            "serviceType": ["STANDART"],
            "paymentType": map_payment_type(payment_type),
            "codAmount": 0,
            "invoiceNumber": invoice_number or order_code,
        }

        endpoint = STANDARD_ENDPOINT
        if total_desi >= XL_DESI_THRESHOLD:
            endpoint = XL_ENDPOINT
            payload["serviceType"] = ["TMH"]

        return endpoint, payload

    def create_shipment(
        self,
        order_code: str,
        sender: Dict[str, Any],
        receiver: Dict[str, Any],
        products: List[ShipmentProduct],
        payment_type: Optional[str] = None,
        invoice_number: Optional[str] = None,
    ) -> ShipmentResult:
        """Kargo gönderisi oluşturur"""
        token = self.get_token()
        if not token:
            return ShipmentResult(False, 503, "Hepsijet API token alınamadı. Lütfen kargo ayarlarınızı kontrol edin.")

        endpoint, payload = self.build_shipment_request(
            order_code, sender, receiver, products, payment_type, invoice_number
        )

        try:
            response = self.session.post(
                f"{self.api_url}{endpoint}", json=payload,
                headers=self._headers(token), timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Hepsijet: Gönderi oluşturma hatası ({order_code}): {e}")
            return ShipmentResult(False, 503, f"Bir hata oluştu: {e}", endpoint=endpoint, request=payload)

        data = _safe_json(response)

        if not response.ok:
            message = first_present(data, ERROR_MESSAGE_FIELDS, "API hatası")
            logger.error(f"❌ Hepsijet: API hatası HTTP {response.status_code} ({endpoint}): {response.text[:500]}")
            return ShipmentResult(False, response.status_code, f"API hatası: {message}",
                                  endpoint=endpoint, request=payload, raw=data)

        delivery_no = first_present(data, DELIVERY_NO_FIELDS)
        if not delivery_no:
            message = first_present(data, ERROR_MESSAGE_FIELDS, "Bilinmeyen hata")
            logger.error(f"❌ Hepsijet: Gönderi oluşturulamadı ({order_code}): {data}")
            return ShipmentResult(False, 400, f"Gönderi oluşturulamadı: {message}",
                                  endpoint=endpoint, request=payload, raw=data)

        delivery_no = str(delivery_no)
        logger.info(f"✅ Hepsijet shipment created: {order_code} -> {delivery_no} ({endpoint})")
        return ShipmentResult(
            True, 200, "Kargo başarıyla kaydedildi.",
            tracking_number=delivery_no,
            barcode=str(first_present(data, BARCODE_FIELDS, delivery_no)),
            delivery_no=delivery_no,
            status=str(first_present(data, STATUS_FIELDS, "SUCCESS")),
            endpoint=endpoint,
            request=payload,
            raw=data,
        )

    def cancel_shipment(
        self,
        delivery_no: Optional[str] = None,
        customer_order_id: Optional[str] = None,
        reason: str = "Müşteri talebi ile iptal edildi",
    ) -> ShipmentResult:
        """
        Gönderi iptali

        deliveryNo varsa deleteDeliveryOrder, yoksa customerOrderId ile deleteDeliveryAdvance
        """
        if not delivery_no and not customer_order_id:
            return ShipmentResult(False, 400, "Gönderi numarası veya sipariş numarası gereklidir.")

        token = self.get_token()
        if not token:
            return ShipmentResult(False, 503, "Hepsijet API token alınamadı.")

        if delivery_no:
            endpoint = f"/rest/delivery/deleteDeliveryOrder/{delivery_no}"
        else:
            endpoint = f"/rest/advance/deleteDeliveryAdvance/{customer_order_id}"
        payload = {"reason": reason}

        try:
            response = self.session.post(
                f"{self.api_url}{endpoint}", json=payload,
                headers=self._headers(token), timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Hepsijet: İptal hatası: {e}")
            return ShipmentResult(False, 503, f"Bir hata oluştu: {e}", endpoint=endpoint, request=payload)

        data = _safe_json(response)

        if not response.ok:
            message = first_present(data, ERROR_MESSAGE_FIELDS, "API hatası")
            logger.error(f"❌ Hepsijet: İptal API hatası HTTP {response.status_code} ({endpoint})")
            return ShipmentResult(False, response.status_code, f"API hatası: {message}",
                                  endpoint=endpoint, request=payload, raw=data)

        success = first_present(data, CANCEL_SUCCESS_FIELDS, True)
        if success is False or str(success).lower() == "false":
            message = first_present(data, ERROR_MESSAGE_FIELDS, "Bilinmeyen hata")
            return ShipmentResult(False, 400, f"İptal edilemedi: {message}",
                                  endpoint=endpoint, request=payload, raw=data)

        logger.info(f"✅ Hepsijet shipment cancelled: {delivery_no or customer_order_id}")
        return ShipmentResult(
            True, 200, str(data.get("message") or "Kargo başarıyla iptal edildi."),
            tracking_number=delivery_no, delivery_no=delivery_no,
            status=ShippingStatus.CANCELLED.value,
            endpoint=endpoint, request=payload, raw=data,
        )

    def track_shipment(
        self,
        delivery_no: Optional[str] = None,
        barcode: Optional[str] = None,
        customer_order_id: Optional[str] = None,
    ) -> TrackingResult:
        """Gönderi takibi (iki endpoint sırayla denenir)"""
        if delivery_no:
            payload = {"deliveryNo": delivery_no}
        elif barcode:
            payload = {"barcode": barcode}
        elif customer_order_id:
            payload = {"customerOrderId": customer_order_id}
        else:
            return TrackingResult(False, 400, "Gönderi numarası, barkod veya sipariş numarası gereklidir.")

        token = self.get_token()
        if not token:
            return TrackingResult(False, 503, "Hepsijet API token alınamadı.")

        def call(endpoint: str) -> requests.Response:
            return self.session.post(
                f"{self.api_url}{endpoint}", json=payload,
                headers=self._headers(token), timeout=self.config.timeout,
            )

        try:
            endpoint, response = EndpointChain(TRACKING_ENDPOINTS).run(call)
        except UpstreamError as e:
            logger.error(f"❌ Hepsijet: Takip API hatası: {e.message}")
            return TrackingResult(False, e.status_code or 503, f"API hatası: {e.message}")

        data = _safe_json(response)
        carrier_status = str(first_present(data, STATUS_FIELDS, ""))
        found_no = first_present(data, DELIVERY_NO_FIELDS)

        return TrackingResult(
            True, 200, "Kargo takibi başarılı.",
            status=map_carrier_status(carrier_status),
            carrier_status=carrier_status,
            description=first_present(data, STATUS_DESCRIPTION_FIELDS, carrier_status),
            tracking_number=found_no or delivery_no or barcode or customer_order_id,
            delivery_no=found_no,
            events=first_present(data, EVENTS_FIELDS, []),
            tracking_events=first_present(data, TRACKING_EVENTS_FIELDS, []),
            raw=data,
        )

    def get_label(self, barcode: str, total_parcel: int = 1) -> LabelResult:
        """
        Barkod etiketi

        Önce POST /delivery/BarcodeLabel (PDF/görsel veya labelUrl),
        olmazsa GET /delivery/generateZplBarcode/{barcode}/{count}
        """
        if not barcode:
            return LabelResult(False, 400, "Barkod numarası gereklidir.")

        token = self.get_token()
        if not token:
            return LabelResult(False, 503, "Hepsijet API token alınamadı.")

        total_parcel = max(int(total_parcel or 1), 1)

        try:
            response = self.session.post(
                f"{self.api_url}/delivery/BarcodeLabel",
                json={"barcode": barcode, "totalParcel": total_parcel},
                headers=self._headers(token), timeout=self.config.timeout,
            )
            if response.ok:
                content_type = response.headers.get("Content-Type", "") or ""
                if "application/pdf" in content_type or "image" in content_type:
                    return LabelResult(
                        True, 200, "Etiket başarıyla alındı.",
                        label=base64.b64encode(response.content).decode("ascii"),
                        content_type=content_type,
                        format="pdf" if "pdf" in content_type else "image",
                        barcode=barcode,
                    )
                label_url = first_present(_safe_json(response), LABEL_URL_FIELDS)
                if label_url:
                    return LabelResult(True, 200, "Etiket URL'si alındı.", label_url=label_url,
                                       format="url", barcode=barcode)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Hepsijet BarcodeLabel error, falling back to ZPL: {e}")

        try:
            response = self.session.get(
                f"{self.api_url}/delivery/generateZplBarcode/{barcode}/{total_parcel}",
                headers={"Authorization": f"Bearer {token}", "accept": "text/plain"},
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Hepsijet: Etiket alma hatası: {e}")
            return LabelResult(False, 503, f"Bir hata oluştu: {e}")

        if not response.ok:
            logger.error(f"❌ Hepsijet: Etiket alınamadı HTTP {response.status_code}: {response.text[:300]}")
            return LabelResult(False, 503, "Etiket alınamadı.")

        return LabelResult(
            True, 200, "ZPL barkod başarıyla alındı.",
            label=base64.b64encode(response.content).decode("ascii"),
            content_type=response.headers.get("Content-Type") or "text/plain",
            format="zpl",
            barcode=barcode,
        )
