"""Shared pytest fixtures: in-memory database, fake Stripe, mocked rate API."""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock

import pytest

from app import build_services, create_app
from config import Config
from currency import ExchangeRateService, RateCache
from models import init_db
from payments import CheckoutSession, PaymentGateway
from stores import OrderStore, ProductStore

WEBHOOK_SECRET = "whsec_test_secret"

USD_RATES = {"USD": 1, "INR": 83.0, "GBP": 0.79, "EUR": 0.92}


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(PaymentGateway):
    """Real signature checks, canned checkout sessions."""

    def __init__(self):
        super().__init__("sk_test_fake", WEBHOOK_SECRET, "http://localhost:3000")
        self.created = []
        self.listed_sessions = []

    def create_checkout_session(self, product, unit_amount, currency, customer_country):
        n = len(self.created) + 1
        self.created.append({
            "product_id": product.id,
            "unit_amount": unit_amount,
            "currency": currency,
            "country": customer_country,
        })
        return CheckoutSession(id=f"cs_test_{n}", url=f"https://checkout.stripe.com/c/pay/cs_test_{n}")

    def list_checkout_sessions(self, created_after):
        return iter(self.listed_sessions)


def rate_response(rates):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"result": "success", "conversion_rates": dict(rates)}
    return response


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe does."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event_payload(event_type: str, session_id: str, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": session_id, "object": "checkout.session"}},
    }).encode()


def product_data(**overrides) -> dict:
    data = {
        "name": "Smart Fitness Watch",
        "description": "Heart rate, GPS and sleep tracking.",
        "base_price": "100.00",
        "sku": "SFW-002",
        "images": ["https://example.com/watch.jpg"],
    }
    data.update(overrides)
    return data


@pytest.fixture
def test_config() -> Config:
    return Config(
        database_url="sqlite://",
        stripe_secret_key="sk_test_fake",
        stripe_webhook_secret=WEBHOOK_SECRET,
        exchange_api_key="test-exchange-key",
        base_url="http://localhost:5000",
        frontend_url="http://localhost:3000",
        environment="test",
        log_level="DEBUG",
        exchange_api_url="https://rates.example.com/v6",
    )


@pytest.fixture
def session_factory():
    return init_db("sqlite://")


@pytest.fixture
def products(session_factory) -> ProductStore:
    return ProductStore(session_factory)


@pytest.fixture
def orders(session_factory) -> OrderStore:
    return OrderStore(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_http():
    http = MagicMock()
    http.get.return_value = rate_response(USD_RATES)
    return http


@pytest.fixture
def rates(rate_http, clock) -> ExchangeRateService:
    return ExchangeRateService(
        "test-exchange-key", "https://rates.example.com/v6",
        cache=RateCache(clock=clock), http=rate_http,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def services(test_config, gateway, rates):
    return build_services(test_config, gateway=gateway, rates=rates)


@pytest.fixture
def app(services):
    app = create_app(services=services)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
