"""
Ortak API dependency'leri
Kimlik doğrulama dış sistemde; çağıran kimliği header ile gelir
"""
from fastapi import Header, HTTPException, Request, status
from typing import Optional

from app.core.exceptions import (
    MarketplaceError,
    ConfigurationError,
    UpstreamError,
    SignatureVerificationError,
    ValidationError,
    InsufficientBalanceError,
    MissingReferenceError,
    NotFoundError,
    PermissionDeniedError,
    InvalidTransitionError,
)
from connectors.registry import get_payment_registry, get_shipping_registry  # noqa: F401

# Hata tipi -> HTTP status (ilk eşleşen, alt sınıflar önce)
ERROR_STATUS = (
    (InsufficientBalanceError, status.HTTP_402_PAYMENT_REQUIRED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (SignatureVerificationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (MissingReferenceError, status.HTTP_409_CONFLICT),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(error: MarketplaceError) -> HTTPException:
    """İş hatasını HTTPException'a çevirir"""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)


def current_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> int:
    """Alıcı (eczane) kullanıcı ID"""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header gerekli")
    return x_user_id


def current_seller_id(x_seller_id: Optional[int] = Header(None, alias="X-Seller-Id")) -> int:
    """Satıcı ID"""
    if x_seller_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Seller-Id header gerekli")
    return x_seller_id


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
