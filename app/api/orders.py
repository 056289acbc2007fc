"""
Order Endpoints
Alıcı siparişleri ve satıcı sipariş görünümü
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.models import CreateOrderRequest, OrderResponse
from app.core.exceptions import MarketplaceError
from database import get_db
from services.order_service import OrderService, CartLine
from .deps import current_user_id, current_seller_id, http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Orders"])


@router.post("/orders", response_model=OrderResponse, status_code=201)
def create_order(
    request: CreateOrderRequest,
    buyer_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """
    Sepet satırlarından sipariş oluşturur

    - Teklif aktif, SKT geçmemiş ve stok yeterli olmalı
    - Fiyat ve komisyon oranları sipariş anında kopyalanır
    """
    service = OrderService(db)
    try:
        order = service.create_order(
            buyer_id=buyer_id,
            lines=[CartLine(offer_id=line.offer_id, quantity=line.quantity) for line in request.items],
            shipping_address=request.shipping_address.model_dump(),
            buyer_name=request.buyer_name,
            buyer_email=request.buyer_email,
            notes=request.notes,
        )
        db.commit()
        db.refresh(order)
        return order
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    buyer_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        return OrderService(db).get_buyer_order(order_id, buyer_id)
    except MarketplaceError as e:
        raise http_error(e)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    buyer_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Sipariş iptali (yalnızca beklemede / onaylandı durumunda)"""
    service = OrderService(db)
    try:
        order = service.get_buyer_order(order_id, buyer_id)
        service.cancel_order(order)
        db.commit()
        db.refresh(order)
        return order
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


@router.get("/seller/orders/{order_id}")
def seller_order(
    order_id: int,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    """
    Satıcı sipariş detayı + kesinti özeti

    financial_breakdown: {subtotal, deductions[], total_deductions, net_amount}
    """
    try:
        return OrderService(db).seller_order_view(order_id, seller_id)
    except MarketplaceError as e:
        raise http_error(e)
