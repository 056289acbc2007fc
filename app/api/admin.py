"""
Admin Endpoints - Sipariş durumu ve ödeme talebi yönetimi
UYARI: Bu endpoint'ler production'da yalnızca yönetici anahtarıyla erişilebilir olmalı!
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app.models import OrderStatusUpdate, OrderResponse, AdminPayoutAction, PayoutRequestResponse
from app.core.enums import OrderStatus, PayoutStatus
from app.core.exceptions import MarketplaceError
from database import get_db
from services.order_service import OrderService
from services.payout_service import PayoutService
from .deps import http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/orders/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    request: OrderStatusUpdate,
    db: Session = Depends(get_db),
):
    """
    Sipariş durumunu günceller (durum grafiğine göre)

    - delivered: ödenmiş siparişin satıcı tutarları kullanılabilir bakiyeye geçer
    - cancelled: stok geri yüklenir
    """
    try:
        target = OrderStatus(request.status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Geçersiz durum: {request.status}")

    service = OrderService(db)
    try:
        order = service.get_order(order_id)
        service.transition(order, target)
        db.commit()
        db.refresh(order)
        logger.info(f"🔧 Admin status update: {order.order_number} -> {target.value}")
        return order
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


# ============================================================================
# PAYOUT REQUESTS
# ============================================================================

@router.get("/payout-requests", response_model=List[PayoutRequestResponse])
def list_payout_requests(
    status: Optional[str] = Query(None, description="pending / approved / completed / rejected"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    if status and status not in [s.value for s in PayoutStatus]:
        raise HTTPException(status_code=400, detail=f"Geçersiz durum: {status}")
    return PayoutService(db).list_requests(status=status, limit=limit)


@router.post("/payout-requests/{request_id}/approve", response_model=PayoutRequestResponse)
def approve_payout(
    request_id: int,
    action: AdminPayoutAction,
    db: Session = Depends(get_db),
):
    try:
        payout = PayoutService(db).approve(request_id, admin_id=action.admin_id, notes=action.notes)
        db.commit()
        db.refresh(payout)
        return payout
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


@router.post("/payout-requests/{request_id}/complete", response_model=PayoutRequestResponse)
def complete_payout(
    request_id: int,
    action: AdminPayoutAction,
    db: Session = Depends(get_db),
):
    """Banka transferi yapıldı olarak işaretler"""
    try:
        payout = PayoutService(db).complete(
            request_id,
            admin_id=action.admin_id,
            transaction_reference=action.transaction_reference,
            notes=action.notes,
        )
        db.commit()
        db.refresh(payout)
        return payout
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


@router.post("/payout-requests/{request_id}/reject", response_model=PayoutRequestResponse)
def reject_payout(
    request_id: int,
    action: AdminPayoutAction,
    db: Session = Depends(get_db),
):
    """Reddedilen tutar satıcının kullanılabilir bakiyesine geri döner"""
    try:
        payout = PayoutService(db).reject(request_id, admin_id=action.admin_id, notes=action.notes)
        db.commit()
        db.refresh(payout)
        return payout
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


@router.get("/payout-statistics")
def payout_statistics(db: Session = Depends(get_db)):
    return PayoutService(db).statistics()
