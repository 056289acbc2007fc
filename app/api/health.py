"""
Health Check Endpoint
"""
from fastapi import APIRouter, Depends
from datetime import datetime
from sqlalchemy import text
import logging

from app.models import HealthResponse
from app.core.config import get_settings
from connectors.registry import PaymentGatewayRegistry, ShippingCarrierRegistry
from sqlalchemy.orm import Session
from database import get_db
from .deps import get_payment_registry, get_shipping_registry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthResponse)
def health_check(
    db: Session = Depends(get_db),
    payments: PaymentGatewayRegistry = Depends(get_payment_registry),
    shipping: ShippingCarrierRegistry = Depends(get_shipping_registry),
):
    """
    Sistem sağlığını kontrol eder
    """
    settings = get_settings()

    try:
        db.execute(text("SELECT 1"))
        db_connection = "connected"
    except Exception as e:
        logger.error(f"❌ Database health check failed: {e}")
        db_connection = "disconnected"

    return HealthResponse(
        status="healthy" if db_connection == "connected" else "degraded",
        timestamp=datetime.now(),
        database_connection=db_connection,
        payment_gateway=payments.active_kind.value,
        shipping_provider=shipping.active_kind.value,
        version=settings.app_version,
    )
