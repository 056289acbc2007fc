"""
Iyzico Checkout Form Connector
Checkout form initialize, callback doğrulama (X-IYZ-Signature) ve iade
"""
import requests
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Any

from app.core.config import IyzicoConfig
from app.core.enums import PaymentGatewayKind
from app.core.exceptions import ConfigurationError, UpstreamError
from app.core.money import api_amount, money
from .payment_base import (
    PaymentGateway,
    CallbackRequest,
    PaymentInitResult,
    PaymentResult,
    RefundResult,
    hmac_sha256_b64,
    signatures_match,
)
from .pki import build_auth_headers

logger = logging.getLogger(__name__)

INITIALIZE_PATH = "/payment/iyzipos/checkoutform/initialize/auth/ecom"
DETAIL_PATH = "/payment/iyzipos/checkoutform/auth/ecom/detail"
REFUND_PATH = "/payment/refund"

ENABLED_INSTALLMENTS = [1, 2, 3, 6, 9]


class IyzicoClient(PaymentGateway):
    """Iyzico ödeme adapter'ı"""

    kind = PaymentGatewayKind.IYZICO

    def __init__(self, config: IyzicoConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.base_url = config.base_url.rstrip('/')
        self.session = session or requests.Session()

        logger.info(f"IyzicoClient initialized: {self.base_url} (test_mode={config.test_mode})")

    # ========================================================================
    # HTTP
    # ========================================================================

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        İmzalı POST isteği

        Raises:
            UpstreamError: HTTP hatası veya status != success
        """
        url = f"{self.base_url}{path}"
        headers = build_auth_headers(self.config.api_key, self.config.secret_key, payload)

        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.config.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Iyzico connection error ({url}): {e}")
            raise UpstreamError(f"Iyzico bağlantı hatası: {e}")

        if not response.ok:
            logger.error(f"Iyzico HTTP {response.status_code} ({url}): {response.text[:500]}")
            raise UpstreamError("Ödeme servisi bağlantı hatası", status_code=response.status_code, body=response.text)

        data = response.json()
        if data.get('status') != 'success':
            logger.warning(
                f"Iyzico error: code={data.get('errorCode')} message={data.get('errorMessage')}"
            )
            raise UpstreamError(data.get('errorMessage') or 'Iyzico işlemi başarısız',
                                status_code=response.status_code, body=response.text)

        return data

    def _require_credentials(self):
        if not self.config.is_configured:
            raise ConfigurationError("Iyzico API bilgileri eksik.")

    # ========================================================================
    # REQUEST BUILDERS
    # ========================================================================

    def _basket_items(self, order) -> List[Dict[str, Any]]:
        items = []
        for item in order.items:
            product = item.product
            category = product.category if product is not None else None
            items.append({
                'id': str(item.id),
                'name': item.product_name or (product.name if product is not None else 'Urun'),
                'category1': category.name if category is not None else 'Genel',
                'itemType': 'PHYSICAL',
                'price': api_amount(item.total_price),
            })
        return items

    def build_checkout_request(self, order, client_ip: Optional[str] = None) -> Dict[str, Any]:
        """Checkout form initialize request body"""
        address = order.shipping_address or {}
        buyer_name = order.buyer_name or address.get('name') or 'Musteri'
        contact = {
            'contactName': address.get('name') or buyer_name,
            'city': address.get('city') or 'Istanbul',
            'country': 'Turkey',
            'address': address.get('address') or 'Adres',
        }

        return {
            'locale': 'tr',
            'conversationId': order.order_number,
            'price': api_amount(order.subtotal),
            'paidPrice': api_amount(order.total_amount),
            'currency': 'TRY',
            'basketId': order.order_number,
            'paymentGroup': 'PRODUCT',
            'callbackUrl': self.config.callback_url,
            'enabledInstallments': list(ENABLED_INSTALLMENTS),
            'buyer': {
                'id': str(order.buyer_id),
                'name': buyer_name,
                'surname': address.get('surname') or '',
                'gsmNumber': address.get('phone') or '',
                'email': order.buyer_email or '',
                'identityNumber': address.get('identity_number') or '11111111111',
                'registrationAddress': contact['address'],
                'ip': client_ip or '127.0.0.1',
                'city': contact['city'],
                'country': 'Turkey',
            },
            'shippingAddress': dict(contact),
            'billingAddress': dict(contact),
            'basketItems': self._basket_items(order),
        }

    # ========================================================================
    # GATEWAY INTERFACE
    # ========================================================================

    def _checkout_form(self, order, client_ip: Optional[str]) -> Dict[str, Any]:
        self._require_credentials()
        data = self._post(INITIALIZE_PATH, self.build_checkout_request(order, client_ip))
        if not data.get('checkoutFormContent'):
            raise UpstreamError("Ödeme formu oluşturulamadı")
        return data

    def initialize(self, order, client_ip: Optional[str] = None) -> PaymentInitResult:
        try:
            data = self._checkout_form(order, client_ip)
            logger.info(f"✅ Iyzico checkout form created: {order.order_number}")
            return PaymentInitResult.ok(
                payment_url=data.get('paymentPageUrl'),
                checkout_html=data['checkoutFormContent'],
                transaction_id=data.get('token') or f"IYZ-{order.order_number}",
            )
        except (ConfigurationError, UpstreamError) as e:
            logger.error(f"❌ Iyzico initialize failed ({order.order_number}): {e.message}")
            return PaymentInitResult.failure(e.message, e.code)
        except Exception as e:
            logger.error(f"❌ Iyzico initialize error ({order.order_number}): {e}", exc_info=True)
            return PaymentInitResult.failure(f"Ödeme başlatılamadı: {e}")

    def get_checkout_html(self, order, client_ip: Optional[str] = None) -> str:
        try:
            return self._checkout_form(order, client_ip)['checkoutFormContent']
        except (ConfigurationError, UpstreamError) as e:
            logger.error(f"❌ Iyzico checkout html failed ({order.order_number}): {e.message}")
            return self._error_html(e.message)
        except Exception as e:
            logger.error(f"❌ Iyzico checkout html error ({order.order_number}): {e}", exc_info=True)
            return self._error_html("Ödeme formu oluşturulurken hata oluştu")

    @staticmethod
    def _error_html(message: str) -> str:
        return (
            '<div class="iyzico-error">'
            '<h3>Ödeme Hatası</h3>'
            f'<p>{message}</p>'
            '</div>'
        )

    def verify_signature(self, request: CallbackRequest) -> bool:
        """
        X-IYZ-Signature = base64(HMAC-SHA256(raw body, secret_key))

        İmzasız callback'ler yalnızca allow_unsigned_callbacks açıksa ve token varsa kabul edilir
        """
        signature = request.header('X-IYZ-Signature')

        if not signature:
            if self.config.allow_unsigned_callbacks and request.get('token'):
                logger.warning(f"⚠️ Iyzico unsigned callback accepted (legacy mode), ip={request.client_ip}")
                return True
            return False

        body = request.raw_body.decode('utf-8') if isinstance(request.raw_body, bytes) else (request.raw_body or '')
        expected = hmac_sha256_b64(body, self.config.secret_key)
        return signatures_match(expected, signature)

    def handle_callback(self, request: CallbackRequest) -> PaymentResult:
        token = request.get('token')

        if not token:
            logger.warning(f"Iyzico callback: token missing, ip={request.client_ip}")
            return PaymentResult.rejected("Token eksik", raw=dict(request.form))

        if not self.config.is_configured:
            return PaymentResult.failed("Iyzico API bilgileri eksik.", error_code="configuration")

        if not self.verify_signature(request):
            logger.warning(f"❌ Iyzico callback: invalid signature, ip={request.client_ip}")
            return PaymentResult.rejected("Geçersiz imza", raw=dict(request.form))

        detail_request = {
            'locale': 'tr',
            'conversationId': request.get('conversationId', ''),
            'token': token,
        }

        try:
            data = self._post(DETAIL_PATH, detail_request)
        except UpstreamError as e:
            return PaymentResult.failed(e.message, error_code=e.code,
                                        order_reference=request.get('conversationId') or None,
                                        raw=dict(request.form))
        except Exception as e:
            logger.error(f"❌ Iyzico callback error: {e}", exc_info=True)
            return PaymentResult.failed(str(e), error_code="unexpected")

        order_reference = data.get('basketId') or data.get('conversationId')

        if data.get('paymentStatus') not in (None, 'SUCCESS'):
            return PaymentResult.failed(data.get('errorMessage') or 'Ödeme başarısız',
                                        order_reference=order_reference, raw=data)

        paid_amount = None
        try:
            if data.get('paidPrice') is not None:
                paid_amount = money(str(data['paidPrice']))
        except (InvalidOperation, ValueError):
            logger.warning(f"Iyzico callback: unparseable paidPrice={data.get('paidPrice')}")

        logger.info(
            f"✅ Iyzico payment completed: payment_id={data.get('paymentId')} "
            f"order={order_reference} paid={paid_amount}"
        )

        return PaymentResult.completed(
            transaction_id=str(data.get('paymentId') or token),
            order_reference=order_reference,
            paid_amount=paid_amount,
            raw=data,
        )

    def refund(self, order, amount: Decimal, client_ip: Optional[str] = None) -> RefundResult:
        if not order.payment_reference:
            return RefundResult.failure("Ödeme referansı bulunamadı.", "missing_reference")

        refund_request = {
            'locale': 'tr',
            'conversationId': order.order_number,
            'paymentTransactionId': order.payment_reference,
            'price': api_amount(amount),
            'currency': 'TRY',
            'ip': client_ip or '127.0.0.1',
        }

        try:
            self._require_credentials()
            data = self._post(REFUND_PATH, refund_request)
        except (ConfigurationError, UpstreamError) as e:
            logger.error(f"❌ Iyzico refund failed ({order.order_number}): {e.message}")
            return RefundResult.failure(e.message, e.code)
        except Exception as e:
            logger.error(f"❌ Iyzico refund error ({order.order_number}): {e}", exc_info=True)
            return RefundResult.failure(str(e), "unexpected")

        logger.info(f"✅ Iyzico refund completed: {order.order_number} amount={amount}")
        return RefundResult.ok(
            refund_id=str(data.get('paymentTransactionId') or data.get('paymentId') or order.payment_reference),
            refunded_amount=money(amount),
        )
