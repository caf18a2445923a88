"""Pytest fixtures: in-memory SQLite, static market prices, mock payout, test client."""
import os

import httpx
import pytest
from fastapi.testclient import TestClient

# Must be set before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("CARD_AUTH_DELAY_SECONDS", "0")
os.environ.setdefault("USDT_TRC20_MODE", "mock")
os.environ["ADMIN_SECRET"] = ""

from app.api.deps import get_controller
from app.core.config import Settings
from app.core.database import create_db_engine, init_db
from app.main import app
from app.services.card_channel import DirectCardChannel
from app.services.lifecycle import OrderLifecycleController
from app.services.order_store import OrderStore
from app.services.payout import PayoutDispatcher
from app.services.paypal_channel import PayPalWalletChannel
from app.services.quote import QuoteEngine

VALID_CARD = "4242424242424242"
FUTURE_EXPIRY = "12/39"


class StaticPriceSource:
    """Market prices for tests; `error` makes every lookup fail like an unreachable API."""

    def __init__(self, prices: dict[str, float] | None = None, error: Exception | None = None):
        self.prices = prices or {}
        self.error = error
        self.calls: list[str] = []

    async def usd_price(self, asset: str) -> float | None:
        self.calls.append(asset)
        if self.error is not None:
            raise self.error
        return self.prices.get(asset)


def make_settings(**overrides) -> Settings:
    values = {
        "card_auth_delay_seconds": 0,
        "usdt_trc20_mode": "mock",
        "base_url": "http://testserver",
    }
    values.update(overrides)
    return Settings(**values)


def paypal_transport(calls: list, execute_status: int = 200) -> httpx.MockTransport:
    """Sandbox PayPal REST API: token, web profile, create, execute."""

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        path = request.url.path
        if path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21AA-test", "expires_in": 32400})
        if path == "/v1/payment-experience/web-profiles":
            return httpx.Response(201, json={"id": "XP-TEST-PROFILE"})
        if path == "/v1/payments/payment":
            return httpx.Response(201, json={
                "id": "PAYID-TEST",
                "state": "created",
                "links": [
                    {"rel": "self", "href": "https://api.sandbox.paypal.com/v1/payments/payment/PAYID-TEST"},
                    {"rel": "approval_url", "href": "https://www.sandbox.paypal.com/checkoutnow?token=EC-TEST"},
                ],
            })
        if path.endswith("/execute"):
            if execute_status != 200:
                return httpx.Response(execute_status, json={"name": "INSTRUMENT_DECLINED"})
            return httpx.Response(200, json={"id": "PAYID-TEST", "state": "approved"})
        return httpx.Response(404, json={"name": "NOT_FOUND"})

    return httpx.MockTransport(handler)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def prices() -> StaticPriceSource:
    return StaticPriceSource({"USDT": 1.0, "BTC": 65000.0, "ETH": 2600.0})


@pytest.fixture
def store() -> OrderStore:
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    return OrderStore(engine)


@pytest.fixture
def paypal_calls() -> list:
    return []


@pytest.fixture
def paypal_channel(paypal_calls) -> PayPalWalletChannel:
    s = make_settings(paypal_client_id="client-id", paypal_client_secret="client-secret")
    client = httpx.AsyncClient(transport=paypal_transport(paypal_calls), base_url="https://api.sandbox.paypal.com")
    return PayPalWalletChannel(s, client=client)


@pytest.fixture
def controller(settings, prices, store, paypal_channel) -> OrderLifecycleController:
    return OrderLifecycleController(
        store=store,
        quotes=QuoteEngine(prices),
        channels={
            DirectCardChannel.name: DirectCardChannel(settings),
            PayPalWalletChannel.name: paypal_channel,
        },
        payouts=PayoutDispatcher(settings),
        sellable_assets=settings.sellable_asset_set,
    )


@pytest.fixture(scope="function")
def client(controller):
    """TestClient; lifespan creates the tables, the controller is the test one."""
    app.dependency_overrides[get_controller] = lambda: controller
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_controller, None)
