"""
Shared fixtures: in-memory database, catalog factories and fake HTTP sessions.
"""

import json
import os

os.environ.setdefault("API_KEY", "test-api-key")

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import IyzicoConfig, PayTRConfig, HepsijetConfig, get_settings
from app.core.enums import PaymentGatewayKind, ShippingProviderKind
from connectors.hepsijet_client import HepsijetClient, TokenCache
from connectors.iyzico_client import IyzicoClient
from connectors.paytr_client import PayTRClient
from connectors.registry import PaymentGatewayRegistry, ShippingCarrierRegistry
from database import Base, Category, Product, Offer
from services.order_service import OrderService, CartLine


# ── fake HTTP ─────────────────────────────────────────────────────────────────

class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, content: bytes = b"",
                 headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self._json = json_data
        self.headers = headers or {}
        if json_data is not None and not content:
            content = json.dumps(json_data).encode("utf-8")
        self.content = content
        self.text = content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeSession:
    """
    requests.Session yerine geçer; yanıtlar sırayla döner, çağrılar kaydedilir.

    Queue içinde bir Exception örneği varsa çağrıda fırlatılır.
    """

    def __init__(self, get: Optional[List] = None, post: Optional[List] = None):
        self.get_queue = list(get or [])
        self.post_queue = list(post or [])
        self.calls: List[Dict[str, Any]] = []

    def _next(self, queue: List, method: str, url: str, kwargs: Dict[str, Any]):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not queue:
            raise AssertionError(f"Unexpected {method} {url}")
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next(self.get_queue, "GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next(self.post_queue, "POST", url, kwargs)

    def calls_to(self, fragment: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if fragment in call["url"]]


CONNECTION_ERROR = requests.exceptions.ConnectionError("connection refused")


# ── database ──────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def settings():
    return get_settings()


# ── catalog factories ─────────────────────────────────────────────────────────

@pytest.fixture
def make_offer(db):
    def _make(
        price="100.00",
        stock=10,
        seller_id=1,
        commission_rate="10",
        marketplace_fee_rate=None,
        withholding_tax_rate=None,
        expiry_date: Optional[date] = None,
        status="active",
        desi="1",
        weight_grams="1000",
        name="Parol 500 mg 20 Tablet",
    ) -> Offer:
        category = Category(
            name="İlaç",
            commission_rate=Decimal(commission_rate),
            marketplace_fee_rate=Decimal(marketplace_fee_rate) if marketplace_fee_rate is not None else None,
            withholding_tax_rate=Decimal(withholding_tax_rate) if withholding_tax_rate is not None else None,
        )
        product = Product(category=category, name=name, brand="Atabay", barcode="8699536090115",
                          desi=Decimal(desi), weight_grams=Decimal(weight_grams))
        offer = Offer(product=product, seller_id=seller_id, price=Decimal(price), stock=stock,
                      expiry_date=expiry_date, status=status)
        db.add(offer)
        db.flush()
        return offer

    return _make


ADDRESS = {
    "name": "Merkez Eczanesi",
    "phone": "05551112233",
    "city": "İstanbul",
    "district": "Kadıköy",
    "address": "Moda Cad. No:1",
}


@pytest.fixture
def make_order(db, make_offer, settings):
    """Varsayılan: tek teklif, 2 adet"""
    def _make(lines=None, buyer_id=7, **offer_kwargs):
        if lines is None:
            offer = make_offer(**offer_kwargs)
            lines = [CartLine(offer_id=offer.id, quantity=2)]
        order = OrderService(db, settings=settings).create_order(
            buyer_id=buyer_id,
            lines=lines,
            shipping_address=dict(ADDRESS),
            buyer_name="Merkez Eczanesi",
            buyer_email="merkez@example.com",
        )
        return order

    return _make


# ── adapters ──────────────────────────────────────────────────────────────────

IYZICO_CONFIG = IyzicoConfig(api_key="iyz-api", secret_key="iyz-secret", test_mode=True)
PAYTR_CONFIG = PayTRConfig(merchant_id="123456", merchant_key="paytr-key", merchant_salt="paytr-salt",
                           test_mode=False)
HEPSIJET_CONFIG = HepsijetConfig(api_key="hj-user", api_secret="hj-pass", enabled=True,
                                 token_safety_margin_seconds=300)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def paytr():
    return PayTRClient(PAYTR_CONFIG, session=FakeSession())


@pytest.fixture
def payment_registry(paytr):
    iyzico = IyzicoClient(IYZICO_CONFIG, session=FakeSession())
    return PaymentGatewayRegistry(
        {PaymentGatewayKind.IYZICO: iyzico, PaymentGatewayKind.PAYTR: paytr},
        PaymentGatewayKind.PAYTR,
    )


@pytest.fixture
def hepsijet_session():
    return FakeSession()


@pytest.fixture
def hepsijet(hepsijet_session, clock):
    return HepsijetClient(HEPSIJET_CONFIG, session=hepsijet_session, token_cache=TokenCache(), clock=clock)


@pytest.fixture
def shipping_registry(hepsijet):
    return ShippingCarrierRegistry({ShippingProviderKind.HEPSIJET: hepsijet}, ShippingProviderKind.HEPSIJET)


def token_response(token="jwt-token", expires_in=3600) -> FakeResponse:
    return FakeResponse(200, {"token": token, "expires_in": expires_in})


def paytr_callback(client: PayTRClient, merchant_oid: str, status: str, total_amount: str, **extra) -> dict:
    """PayTR'ın göndereceği imzalı callback formu"""
    form = {
        "merchant_oid": merchant_oid,
        "status": status,
        "total_amount": total_amount,
        "hash": client.callback_hash(merchant_oid, status, total_amount),
    }
    form.update(extra)
    return form
