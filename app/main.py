"""
FastAPI Main Application
"""
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security.api_key import APIKeyHeader
from datetime import datetime, timezone
import logging
import sys
import os

from app.core import get_settings
from app.api import health, orders, payments, shipping, wallet, admin

settings = get_settings()

# Logging - Create logs directory if it doesn't exist
log_handlers = [logging.StreamHandler(sys.stdout)]
try:
    os.makedirs('logs', exist_ok=True)
    log_handlers.append(logging.FileHandler('logs/app.log', encoding='utf-8'))
except (OSError, PermissionError):
    # Read-only filesystem: stdout only
    pass

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=log_handlers
)
logger = logging.getLogger(__name__)

# FastAPI App
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## EczanePazari Settlement API

    **Modüller:**
    - Komisyon / kesinti hesaplama (sipariş anında kalem bazında)
    - Ödeme: Iyzico checkout form, PayTR iframe (imzalı callback)
    - Kargo: Hepsijet gönderi, iptal, takip, etiket
    - Satıcı cüzdanı: bekleyen / kullanılabilir bakiye, hareket defteri
    - Ödeme talepleri ve banka hesapları (IBAN doğrulama)
    """,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS
allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API Key Security
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

async def verify_api_key(api_key: str = Depends(api_key_header)):
    """API key verification"""
    if api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key"
        )
    return api_key

# Startup
@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    try:
        from database.init_db import init_database
        init_database()
    except Exception as e:
        logger.error(f"❌ Database initialization error: {e}")

    logger.info(f"   - Payment gateway: {settings.payment_active_gateway}")
    logger.info(f"   - Shipping provider: {settings.shipping_active_provider}")

@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown"""
    logger.info("Shutting down...")

# Root
@app.get("/", tags=["Root"])
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "timestamp": datetime.now(timezone.utc)
    }

# Include routers
app.include_router(health.router)  # No auth required

# Sağlayıcı callback'leri imza ile doğrulanır, API key yok
app.include_router(payments.callback_router)
logger.info("✅ Payment callback router registered (signature verified, no API key)")

app.include_router(orders.router, dependencies=[Depends(verify_api_key)])
app.include_router(payments.router, dependencies=[Depends(verify_api_key)])
app.include_router(shipping.router, dependencies=[Depends(verify_api_key)])
app.include_router(wallet.router, dependencies=[Depends(verify_api_key)])

# Admin Router (⚠️ GÜVENLI! API key gerekli)
app.include_router(admin.router, dependencies=[Depends(verify_api_key)])
logger.info("✅ Admin router registered (protected with API key)")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
