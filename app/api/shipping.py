"""
Shipping Endpoints
Satıcı kargo işlemleri (Hepsijet)
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.models import (
    CreateShipmentRequest,
    CancelShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
    LabelResponse,
)
from app.core.exceptions import MarketplaceError
from connectors.registry import ShippingCarrierRegistry
from database import get_db
from services.shipping_service import ShippingService
from .deps import current_seller_id, get_shipping_registry, http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/shipping", tags=["Shipping"])


def _upstream_status(status_code: Optional[int]) -> int:
    """Taşıyıcı hata kodunu istemciye yansıtır (4xx/5xx değilse 502)"""
    if status_code and status_code >= 400:
        return status_code
    return 502


@router.post("/orders/{order_id}/shipment", response_model=ShipmentResponse)
def create_shipment(
    order_id: int,
    request: CreateShipmentRequest,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
    registry: ShippingCarrierRegistry = Depends(get_shipping_registry),
):
    """
    Kargo kaydı oluşturur

    - Toplam desi 41 ve üzeri XL servisine gider
    - Başarılı kayıt siparişi shipped durumuna taşır
    """
    service = ShippingService(db, registry)
    try:
        result = service.create_shipment(order_id, seller_id, request.sender.model_dump(), request.payment_type)
        # Başarısız çağrı da shipping_logs'a yazılır
        db.commit()
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)

    if not result.success:
        raise HTTPException(status_code=_upstream_status(result.status_code), detail=result.message)

    return ShipmentResponse(
        success=True,
        message=result.message,
        tracking_number=result.tracking_number,
        barcode=result.barcode,
        status=result.status,
    )


@router.post("/orders/{order_id}/cancel", response_model=ShipmentResponse)
def cancel_shipment(
    order_id: int,
    request: Optional[CancelShipmentRequest] = None,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
    registry: ShippingCarrierRegistry = Depends(get_shipping_registry),
):
    service = ShippingService(db, registry)
    try:
        result = service.cancel_shipment(order_id, seller_id, reason=request.reason if request else None)
        db.commit()
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)

    if not result.success:
        raise HTTPException(status_code=_upstream_status(result.status_code), detail=result.message)

    return ShipmentResponse(success=True, message=result.message, status="cancelled")


@router.get("/orders/{order_id}/track", response_model=TrackingResponse)
def track_shipment(
    order_id: int,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
    registry: ShippingCarrierRegistry = Depends(get_shipping_registry),
):
    """Takip bilgisi (teslim edildiyse sipariş delivered olur)"""
    service = ShippingService(db, registry)
    try:
        result = service.track_shipment(order_id, seller_id)
        db.commit()
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)

    if not result.success:
        raise HTTPException(status_code=_upstream_status(result.status_code), detail=result.message)

    return TrackingResponse(
        success=True,
        message=result.message,
        status=result.status.value,
        carrier_status=result.carrier_status,
        description=result.description,
        tracking_number=result.tracking_number,
        events=result.events,
    )


@router.get("/orders/{order_id}/label", response_model=LabelResponse)
def shipping_label(
    order_id: int,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
    registry: ShippingCarrierRegistry = Depends(get_shipping_registry),
):
    service = ShippingService(db, registry)
    try:
        result = service.get_label(order_id, seller_id)
        db.commit()
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)

    if not result.success:
        raise HTTPException(status_code=_upstream_status(result.status_code), detail=result.message)

    return LabelResponse(
        success=True,
        message=result.message,
        format=result.format,
        content_type=result.content_type,
        label=result.label,
        label_url=result.label_url,
        barcode=result.barcode,
    )
