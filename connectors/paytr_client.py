"""
PayTR iFrame Connector
get-token, callback hash doğrulama ve iade
Tutarlar PayTR tarafında kuruş cinsindendir
"""
import base64
import json
import requests
import logging
import uuid
from decimal import Decimal, InvalidOperation
from html import escape
from typing import Dict, List, Optional, Any

from app.core.config import PayTRConfig
from app.core.enums import PaymentGatewayKind
from app.core.exceptions import ConfigurationError, UpstreamError
from app.core.money import api_amount, from_kurus, money, to_kurus, format_try
from .payment_base import (
    PaymentGateway,
    CallbackRequest,
    PaymentInitResult,
    PaymentResult,
    RefundResult,
    hmac_sha256_b64,
    signatures_match,
)

logger = logging.getLogger(__name__)

TOKEN_PATH = "/odeme/api/get-token"
REFUND_PATH = "/odeme/iade"
IFRAME_PATH = "/odeme/guvenli/"


class PayTRClient(PaymentGateway):
    """PayTR ödeme adapter'ı"""

    kind = PaymentGatewayKind.PAYTR

    def __init__(self, config: PayTRConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.api_url = config.api_url.rstrip('/')
        self.session = session or requests.Session()

        logger.info(f"PayTRClient initialized: {self.api_url} (test_mode={config.test_mode})")

    # ========================================================================
    # HASH
    # ========================================================================

    def token_hash(self, post_data: Dict[str, Any]) -> str:
        """get-token paytr_token değeri"""
        hash_str = "".join(str(post_data[key]) for key in (
            'merchant_id', 'user_ip', 'merchant_oid', 'email', 'payment_amount',
            'user_basket', 'no_installment', 'max_installment', 'currency', 'test_mode',
        ))
        return hmac_sha256_b64(hash_str + self.config.merchant_salt, self.config.merchant_key)

    def callback_hash(self, merchant_oid: str, status: str, total_amount: str) -> str:
        """base64(HMAC-SHA256(merchant_oid + salt + status + total_amount, merchant_key))"""
        return hmac_sha256_b64(
            f"{merchant_oid}{self.config.merchant_salt}{status}{total_amount}",
            self.config.merchant_key,
        )

    def refund_hash(self, merchant_oid: str, return_amount: str) -> str:
        return hmac_sha256_b64(
            f"{self.config.merchant_id}{merchant_oid}{return_amount}{self.config.merchant_salt}",
            self.config.merchant_key,
        )

    # ========================================================================
    # TOKEN
    # ========================================================================

    def _basket(self, order) -> List[list]:
        return [
            [item.product_name or 'Ürün', api_amount(item.unit_price), item.quantity]
            for item in order.items
        ]

    def build_token_request(self, order, client_ip: Optional[str] = None) -> Dict[str, Any]:
        address = order.shipping_address or {}
        test_flag = 1 if self.config.test_mode else 0

        post_data = {
            'merchant_id': self.config.merchant_id,
            'user_ip': client_ip or '127.0.0.1',
            'merchant_oid': order.order_number,
            'email': order.buyer_email or '',
            'payment_amount': to_kurus(order.total_amount),
            'user_basket': base64.b64encode(
                json.dumps(self._basket(order), ensure_ascii=False).encode('utf-8')
            ).decode('ascii'),
            'debug_on': test_flag,
            'no_installment': 0,
            'max_installment': 0,
            'user_name': address.get('name') or order.buyer_name or '',
            'user_address': address.get('address') or '',
            'user_phone': address.get('phone') or '',
            'merchant_ok_url': self.config.ok_url,
            'merchant_fail_url': self.config.fail_url,
            'currency': 'TL',
            'test_mode': test_flag,
        }
        post_data['paytr_token'] = self.token_hash(post_data)
        return post_data

    def get_iframe_token(self, order, client_ip: Optional[str] = None) -> str:
        """
        PayTR iframe token'ı alır

        Raises:
            ConfigurationError: Merchant bilgileri eksik
            UpstreamError: API hatası
        """
        if not self.config.is_configured:
            raise ConfigurationError("PayTR API bilgileri eksik.")

        url = f"{self.api_url}{TOKEN_PATH}"
        try:
            response = self.session.post(url, data=self.build_token_request(order, client_ip),
                                         timeout=self.config.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"PayTR connection error ({url}): {e}")
            raise UpstreamError(f"PayTR bağlantı hatası: {e}")

        if not response.ok:
            logger.error(f"PayTR HTTP {response.status_code}: {response.text[:500]}")
            raise UpstreamError("PayTR API isteği başarısız", status_code=response.status_code, body=response.text)

        data = response.json()
        if data.get('status') != 'success' or not data.get('token'):
            reason = data.get('reason') or 'Ödeme token\'ı alınamadı.'
            logger.error(f"PayTR get-token failed: {reason}")
            raise UpstreamError(reason, status_code=response.status_code, body=response.text)

        return data['token']

    # ========================================================================
    # GATEWAY INTERFACE
    # ========================================================================

    def initialize(self, order, client_ip: Optional[str] = None) -> PaymentInitResult:
        try:
            token = self.get_iframe_token(order, client_ip)
        except (ConfigurationError, UpstreamError) as e:
            logger.error(f"❌ PayTR initialize failed ({order.order_number}): {e.message}")
            return PaymentInitResult.failure(e.message, e.code)
        except Exception as e:
            logger.error(f"❌ PayTR initialize error ({order.order_number}): {e}", exc_info=True)
            return PaymentInitResult.failure(f"Ödeme başlatılamadı: {e}")

        logger.info(f"✅ PayTR token received: {order.order_number}")
        return PaymentInitResult.ok(
            payment_url=f"{self.api_url}{IFRAME_PATH}{token}",
            transaction_id=f"PTR-{order.order_number}",
        )

    def get_checkout_html(self, order, client_ip: Optional[str] = None) -> str:
        if self.config.test_mode:
            return self._test_form(order)

        try:
            token = self.get_iframe_token(order, client_ip)
        except (ConfigurationError, UpstreamError) as e:
            logger.error(f"❌ PayTR iframe failed ({order.order_number}): {e.message}")
            return '<div class="paytr-error">PayTR iFrame yüklenemedi.</div>'

        return (
            f'<iframe src="{self.api_url}{IFRAME_PATH}{token}" id="paytriframe" '
            'frameborder="0" scrolling="no" style="width: 100%; height: 600px;"></iframe>\n'
            f'<script src="{self.api_url}/js/iframeResizer.min.js"></script>\n'
            "<script>iFrameResize({}, '#paytriframe');</script>"
        )

    def _test_form(self, order) -> str:
        """Test modu: callback URL'ine başarılı ödeme post eden form"""
        order_number = escape(order.order_number)
        return (
            '<div class="paytr-checkout-stub">'
            '<h3>PayTR Test Modu</h3>'
            f'<p>Sipariş: {order_number}</p>'
            f'<p class="amount">{format_try(order.total_amount)}</p>'
            '<p>Bu test modudur. Gerçek ödeme alınmaz.</p>'
            f'<form action="{escape(self.config.callback_url)}" method="POST">'
            f'<input type="hidden" name="merchant_oid" value="{order_number}" />'
            f'<input type="hidden" name="total_amount" value="{to_kurus(order.total_amount)}" />'
            '<input type="hidden" name="test_mode" value="1" />'
            '<button type="submit">Test Ödeme Simüle Et (Başarılı)</button>'
            '</form>'
            '</div>'
        )

    def handle_callback(self, request: CallbackRequest) -> PaymentResult:
        merchant_oid = str(request.get('merchant_oid') or '')

        # Hash'siz test_mode=1 callback'leri yalnızca adapter test modundayken geçerli
        if str(request.get('test_mode') or '') == '1' and not request.get('hash'):
            if not self.config.test_mode:
                logger.warning(f"❌ PayTR test callback rejected in live mode, ip={request.client_ip}")
                return PaymentResult.rejected("Test callback canlı modda kabul edilmez", raw=dict(request.form))

            paid_amount = None
            if request.get('total_amount') not in (None, ''):
                paid_amount = from_kurus(request.get('total_amount'))
            logger.info(f"🧪 PayTR test callback simulated success: {merchant_oid}")
            return PaymentResult.completed(
                transaction_id=f"TEST-{uuid.uuid4().hex[:12]}",
                order_reference=merchant_oid or None,
                paid_amount=paid_amount,
                raw=dict(request.form),
            )

        if not self.config.is_configured:
            return PaymentResult.failed("PayTR API bilgileri eksik.", error_code="configuration")

        status = str(request.get('status') or '')
        total_amount = str(request.get('total_amount') or '')
        expected = self.callback_hash(merchant_oid, status, total_amount)

        if not signatures_match(expected, request.get('hash')):
            logger.warning(f"❌ PayTR callback: hash mismatch for {merchant_oid}, ip={request.client_ip}")
            return PaymentResult.rejected("Hash doğrulama hatası", raw=dict(request.form))

        if status != 'success':
            reason = request.get('failed_reason_msg') or 'Ödeme başarısız'
            logger.info(f"PayTR payment failed: {merchant_oid} ({reason})")
            return PaymentResult.failed(reason, order_reference=merchant_oid, raw=dict(request.form))

        try:
            paid_amount = from_kurus(total_amount)
        except (InvalidOperation, ValueError):
            return PaymentResult.failed("Geçersiz tutar", order_reference=merchant_oid, raw=dict(request.form))

        logger.info(f"✅ PayTR payment completed: {merchant_oid} paid={paid_amount}")
        return PaymentResult.completed(
            transaction_id=merchant_oid,
            order_reference=merchant_oid,
            paid_amount=paid_amount,
            raw=dict(request.form),
        )

    def refund(self, order, amount: Decimal, client_ip: Optional[str] = None) -> RefundResult:
        if not order.payment_reference:
            return RefundResult.failure("Ödeme referansı bulunamadı.", "missing_reference")

        amount = money(amount)

        if self.config.test_mode:
            logger.info(f"🧪 PayTR test refund simulated: {order.order_number} amount={amount}")
            return RefundResult.ok(refund_id=f"REFUND-TEST-{uuid.uuid4().hex[:12]}", refunded_amount=amount)

        if not self.config.is_configured:
            return RefundResult.failure("PayTR API bilgileri eksik.", "configuration")

        return_amount = api_amount(amount)
        post_data = {
            'merchant_id': self.config.merchant_id,
            'merchant_oid': order.order_number,
            'return_amount': return_amount,
            'paytr_token': self.refund_hash(order.order_number, return_amount),
        }

        url = f"{self.api_url}{REFUND_PATH}"
        try:
            response = self.session.post(url, data=post_data, timeout=self.config.timeout)
            if not response.ok:
                logger.error(f"PayTR refund HTTP {response.status_code}: {response.text[:500]}")
                return RefundResult.failure("İade API hatası", "upstream")
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ PayTR refund connection error: {e}")
            return RefundResult.failure(f"PayTR bağlantı hatası: {e}", "upstream")
        except ValueError as e:
            logger.error(f"❌ PayTR refund invalid response: {e}")
            return RefundResult.failure("PayTR yanıtı okunamadı", "upstream")

        if data.get('status') != 'success':
            reason = data.get('err_msg') or data.get('reason') or 'İade başarısız'
            logger.warning(f"PayTR refund not successful ({order.order_number}): {reason}")
            return RefundResult.failure(reason, "upstream")

        logger.info(f"✅ PayTR refund completed: {order.order_number} amount={amount}")
        return RefundResult.ok(refund_id=str(data.get('merchant_oid') or order.order_number), refunded_amount=amount)
