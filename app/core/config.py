"""
Application Configuration
Çevre değişkenlerinden yapılandırma yüklenir
"""

from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import BaseModel, Field
from typing import Optional
from functools import lru_cache


# ============================================================================
# ADAPTER CONFIGS - Adapter constructor'larına enjekte edilir
# ============================================================================

class IyzicoConfig(BaseModel):
    """Iyzico adapter ayarları"""
    api_key: str = ""
    secret_key: str = ""
    test_mode: bool = False
    callback_url: str = "http://localhost:8000/api/payments/callback/iyzico"
    allow_unsigned_callbacks: bool = False
    timeout: int = 30

    @property
    def base_url(self) -> str:
        return "https://sandbox-api.iyzipay.com" if self.test_mode else "https://api.iyzipay.com"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.secret_key)


class PayTRConfig(BaseModel):
    """PayTR adapter ayarları"""
    merchant_id: str = ""
    merchant_key: str = ""
    merchant_salt: str = ""
    test_mode: bool = True
    api_url: str = "https://www.paytr.com"
    callback_url: str = "http://localhost:8000/api/payments/callback/paytr"
    ok_url: str = "http://localhost:3000/payment/result?status=success"
    fail_url: str = "http://localhost:3000/payment/result?status=failed"
    timeout: int = 30

    @property
    def is_configured(self) -> bool:
        return bool(self.merchant_id and self.merchant_key and self.merchant_salt)


class HepsijetConfig(BaseModel):
    """Hepsijet kargo adapter ayarları"""
    api_url: str = "https://integration-apitest.hepsijet.com"
    api_key: str = ""
    api_secret: str = ""
    enabled: bool = False
    token_safety_margin_seconds: int = 300
    timeout: int = 30

    @property
    def is_available(self) -> bool:
        return self.enabled and bool(self.api_key)


class Settings(BaseSettings):
    """Uygulama ayarları"""

    # Application
    app_name: str = Field("EczanePazari Settlement API", alias="APP_NAME")
    app_version: str = Field("1.0.0", alias="APP_VERSION")
    debug: bool = Field(False, alias="DEBUG")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Server
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8000, alias="PORT")
    public_url: str = Field("http://localhost:8000", alias="PUBLIC_URL")
    frontend_url: str = Field("http://localhost:3000", alias="FRONTEND_URL")

    # Payment
    payment_active_gateway: str = Field("none", alias="PAYMENT_ACTIVE_GATEWAY")

    iyzico_api_key: Optional[str] = Field(None, alias="IYZICO_API_KEY")
    iyzico_secret_key: Optional[str] = Field(None, alias="IYZICO_SECRET_KEY")
    iyzico_test_mode: bool = Field(False, alias="IYZICO_TEST_MODE")
    iyzico_allow_unsigned_callbacks: bool = Field(False, alias="IYZICO_ALLOW_UNSIGNED_CALLBACKS")

    paytr_merchant_id: Optional[str] = Field(None, alias="PAYTR_MERCHANT_ID")
    paytr_merchant_key: Optional[str] = Field(None, alias="PAYTR_MERCHANT_KEY")
    paytr_merchant_salt: Optional[str] = Field(None, alias="PAYTR_MERCHANT_SALT")
    paytr_test_mode: bool = Field(True, alias="PAYTR_TEST_MODE")

    # Shipping
    shipping_active_provider: str = Field("none", alias="SHIPPING_ACTIVE_PROVIDER")
    hepsijet_api_url: str = Field("https://integration-apitest.hepsijet.com", alias="HEPSIJET_API_URL")
    hepsijet_api_key: Optional[str] = Field(None, alias="HEPSIJET_API_KEY")
    hepsijet_api_secret: Optional[str] = Field(None, alias="HEPSIJET_API_SECRET")
    hepsijet_enabled: bool = Field(False, alias="HEPSIJET_ENABLED")

    # Commission (yüzde)
    commission_marketplace_fee_rate: Decimal = Field(Decimal("0"), alias="COMMISSION_MARKETPLACE_FEE_RATE")
    commission_withholding_tax_rate: Decimal = Field(Decimal("0"), alias="COMMISSION_WITHHOLDING_TAX_RATE")

    # Payout
    payout_minimum_amount: Decimal = Field(Decimal("100"), alias="PAYOUT_MINIMUM_AMOUNT")

    # Database
    database_url: str = Field("sqlite:///./eczanepazari.db", alias="DATABASE_URL")

    # Security
    api_key: str = Field(..., alias="API_KEY")

    # CORS
    allowed_origins: str = Field("*", alias="ALLOWED_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = ""
        populate_by_name = True

    def iyzico_config(self) -> IyzicoConfig:
        return IyzicoConfig(
            api_key=self.iyzico_api_key or "",
            secret_key=self.iyzico_secret_key or "",
            test_mode=self.iyzico_test_mode,
            callback_url=f"{self.public_url.rstrip('/')}/api/payments/callback/iyzico",
            allow_unsigned_callbacks=self.iyzico_allow_unsigned_callbacks,
        )

    def paytr_config(self) -> PayTRConfig:
        frontend = self.frontend_url.rstrip('/')
        return PayTRConfig(
            merchant_id=self.paytr_merchant_id or "",
            merchant_key=self.paytr_merchant_key or "",
            merchant_salt=self.paytr_merchant_salt or "",
            test_mode=self.paytr_test_mode,
            callback_url=f"{self.public_url.rstrip('/')}/api/payments/callback/paytr",
            ok_url=f"{frontend}/payment/result?status=success",
            fail_url=f"{frontend}/payment/result?status=failed",
        )

    def hepsijet_config(self) -> HepsijetConfig:
        return HepsijetConfig(
            api_url=self.hepsijet_api_url,
            api_key=self.hepsijet_api_key or "",
            api_secret=self.hepsijet_api_secret or "",
            enabled=self.hepsijet_enabled,
        )


@lru_cache()
def get_settings() -> Settings:
    """Settings singleton"""
    return Settings()
