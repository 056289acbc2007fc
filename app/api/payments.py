"""
Payment Endpoints
Ödeme başlatma, checkout formu, sağlayıcı callback'leri ve iade
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse
from sqlalchemy.orm import Session
import logging

from app.models import InitializePaymentRequest, PaymentInitResponse, RefundRequest, RefundResponse
from app.core.config import get_settings
from app.core.exceptions import MarketplaceError
from connectors.payment_base import CallbackRequest
from connectors.registry import PaymentGatewayRegistry
from database import get_db
from services.payment_service import PaymentService
from .deps import current_user_id, client_ip, get_payment_registry, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])

# Callback'ler API key olmadan çağrılır; doğrulama imza ile yapılır
callback_router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.get("/config")
def payment_config(registry: PaymentGatewayRegistry = Depends(get_payment_registry)):
    """Aktif ödeme sağlayıcısı"""
    gateway = registry.active
    return {
        "enabled": registry.is_enabled,
        "active_gateway": registry.active_kind.value,
        "test_mode": bool(gateway.config.test_mode) if gateway is not None else False,
        "available_gateways": registry.available(),
    }


@router.post("/initialize", response_model=PaymentInitResponse)
def initialize_payment(
    request: InitializePaymentRequest,
    http_request: Request,
    buyer_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    registry: PaymentGatewayRegistry = Depends(get_payment_registry),
):
    """Sipariş için ödeme oturumu başlatır"""
    service = PaymentService(db, registry)
    try:
        result = service.initialize(request.order_id, buyer_id, client_ip(http_request))
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)

    if not result.success:
        db.rollback()
        status_code = 503 if result.error_code == "configuration" else 502
        raise HTTPException(status_code=status_code, detail=result.error_message)

    db.commit()
    return PaymentInitResponse(
        success=True,
        gateway=registry.active_kind.value,
        payment_url=result.payment_url,
        checkout_html=result.checkout_html,
        transaction_id=result.transaction_id,
    )


@router.get("/checkout/{order_id}", response_class=HTMLResponse)
def checkout_page(
    order_id: int,
    http_request: Request,
    buyer_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    registry: PaymentGatewayRegistry = Depends(get_payment_registry),
):
    """Ödeme formu / iframe HTML"""
    try:
        html = PaymentService(db, registry).checkout_html(order_id, buyer_id, client_ip(http_request))
    except MarketplaceError as e:
        raise http_error(e)
    return HTMLResponse(content=html)


@router.post("/{order_id}/refund", response_model=RefundResponse)
def refund_payment(
    order_id: int,
    request: RefundRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    registry: PaymentGatewayRegistry = Depends(get_payment_registry),
):
    """Ödenmiş siparişi iade eder (yönetici işlemi)"""
    try:
        result = PaymentService(db, registry).refund(order_id, request.amount, client_ip(http_request))
        db.commit()
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)

    return RefundResponse(success=True, refund_id=result.refund_id, refunded_amount=result.refunded_amount)


def _settle_callback(db: Session, registry: PaymentGatewayRegistry, gateway: str, callback: CallbackRequest):
    outcome = PaymentService(db, registry).process_callback(gateway, callback)
    db.commit()
    return outcome


@callback_router.post("/callback/{gateway}")
async def payment_callback(
    gateway: str,
    http_request: Request,
    db: Session = Depends(get_db),
    registry: PaymentGatewayRegistry = Depends(get_payment_registry),
):
    """
    Sağlayıcı callback'i

    - PayTR: düz metin "OK" beklenir (aksi halde tekrar dener)
    - Iyzico: alıcı sonuç sayfasına yönlendirilir
    """
    raw_body = await http_request.body()
    form = dict((await http_request.form()).items())

    callback = CallbackRequest(
        form=form,
        headers=dict(http_request.headers),
        raw_body=raw_body,
        client_ip=client_ip(http_request),
    )

    try:
        # Senkron sağlayıcı sorgusu ve DB işlemi thread pool'da
        outcome = await run_in_threadpool(_settle_callback, db, registry, gateway, callback)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Callback processing error ({gateway}): {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Callback işlenemedi")

    if not outcome.acknowledged:
        raise HTTPException(status_code=403, detail=outcome.message or "Geçersiz imza")

    if gateway.lower() == "paytr":
        return PlainTextResponse("OK")

    frontend = get_settings().frontend_url.rstrip('/')
    result_status = "success" if outcome.outcome in ("paid", "already_processed") else "failed"
    return {
        "status": outcome.outcome,
        "order_id": outcome.order_id,
        "order_number": outcome.order_number,
        "redirect_url": f"{frontend}/payment/result?status={result_status}&order={outcome.order_number or ''}",
    }
