"""HTTP surface: quotes, orders, card payment, admin."""
import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.config import Settings

from conftest import FUTURE_EXPIRY, VALID_CARD

ORDER = {"fiatAmount": 10, "fiatCurrency": "USD", "asset": "USDT", "network": "TRC20", "walletAddress": "TXYZwallet", "country": "US"}


def _create(client: TestClient, **kw) -> dict:
    body = dict(ORDER, **kw)
    r = client.post("/order", json=body)
    assert r.status_code == 200, r.text
    return r.json()


def _pay(client: TestClient, order_id: str, **kw):
    body = {"orderId": order_id, "cardNumber": VALID_CARD, "expiry": FUTURE_EXPIRY, "cvv": "123", "cardHolder": "Jane Doe"}
    body.update(kw)
    return client.post("/pay", json=body)


def test_quote(client: TestClient):
    r = client.post("/quote", json={"fiatAmount": 100, "fiatCurrency": "EUR", "asset": "ETH"})
    assert r.status_code == 200
    j = r.json()
    assert j["asset"] == "ETH"
    assert j["fiatCurrency"] == "EUR"
    assert j["fiatAmountUsd"] == 108.0
    assert j["rate"] == 2600.0
    assert j["fxRateToUsd"] == 1.08
    assert j["cryptoAmount"] == "0.041538"


@pytest.mark.parametrize("amount", [None, "abc", 0])
def test_quote_invalid_amount(client: TestClient, amount):
    r = client.post("/quote", json={"fiatAmount": amount, "asset": "BTC"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid amount"
    assert r.json()["code"] == "validation_error"


def test_quote_from_crypto(client: TestClient):
    r = client.post("/quote-from-crypto", json={"cryptoAmount": "0.01", "fiatCurrency": "USD", "asset": "BTC"})
    assert r.status_code == 200
    j = r.json()
    assert j["fiatAmount"] == 650.0
    assert j["cryptoAmount"] == "0.010000"


def test_quote_from_crypto_invalid_quantity(client: TestClient):
    r = client.post("/quote-from-crypto", json={"cryptoAmount": -1, "asset": "BTC"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid quantity"


def test_create_order(client: TestClient):
    j = _create(client)
    assert j["status"] == "pending"
    assert j["cryptoAmount"] == "10.000000"
    assert j["fiatAmountUsd"] == 10.0
    assert j["walletAddress"] == "TXYZwallet"
    assert j["txHash"] is None
    assert j["message"] == "Order created, waiting for payment"


def test_create_order_missing_fields(client: TestClient):
    r = client.post("/order", json={"fiatAmount": 10, "asset": "BTC"})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing required fields"


def test_create_order_missing_network(client: TestClient):
    r = client.post("/order", json=dict(ORDER, network=None))
    assert r.status_code == 400
    assert r.json()["error"] == "Network is required"


def test_pay_completes_with_mock_payout(client: TestClient):
    order = _create(client)
    r = _pay(client, order["orderId"])
    assert r.status_code == 200
    j = r.json()
    assert set(j) == {"orderId", "status", "txHash", "message", "cardLast4"}
    assert j["status"] == "completed"
    assert j["txHash"].startswith("MOCKUSDT-")
    assert j["cardLast4"] == "4242"


def test_pay_unsupported_payout_is_paid(client: TestClient):
    order = _create(client, asset="BTC", network="BTC")
    j = _pay(client, order["orderId"]).json()
    assert j["status"] == "paid"
    assert j["txHash"] is None
    assert j["message"] == "Payment approved. Waiting for crypto delivery."


def test_pay_unknown_order(client: TestClient):
    r = _pay(client, "ord-nope")
    assert r.status_code == 404
    assert r.json()["error"] == "Order not found"


def test_pay_invalid_card_does_not_leak_number(client: TestClient):
    order = _create(client)
    r = _pay(client, order["orderId"], cardNumber="4242424242424241")
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_instrument"
    assert "4242424242424241" not in r.text


def test_pay_expired_card(client: TestClient):
    order = _create(client)
    r = _pay(client, order["orderId"], expiry="01/20")
    assert r.status_code == 400
    assert r.json()["code"] == "expired_instrument"
    assert r.json()["error"] == "Card has expired"


def test_pay_twice_is_rejected(client: TestClient):
    order = _create(client)
    assert _pay(client, order["orderId"]).status_code == 200
    r = _pay(client, order["orderId"])
    assert r.status_code == 400
    assert r.json()["error"] == "Order already completed"


def test_card_number_is_not_persisted(client: TestClient):
    order = _create(client, asset="BTC", network="BTC")
    _pay(client, order["orderId"])
    listed = client.get("/admin/orders")
    assert VALID_CARD not in listed.text
    stored = next(o for o in listed.json() if o["orderId"] == order["orderId"])
    assert stored["cardLast4"] == "4242"
    assert stored["cardHolder"] == "Jane Doe"
    assert stored["authCode"]


def test_admin_orders_newest_first(client: TestClient):
    first = _create(client)
    second = _create(client)
    r = client.get("/admin/orders")
    assert r.status_code == 200
    ids = [o["orderId"] for o in r.json()]
    assert ids.index(second["orderId"]) < ids.index(first["orderId"])


def test_admin_complete(client: TestClient):
    order = _create(client, asset="BTC", network="BTC")
    _pay(client, order["orderId"])
    r = client.post(f"/admin/order/{order['orderId']}/complete", json={"txHash": "0xfeed"})
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is True
    assert j["order"]["status"] == "completed"
    assert j["order"]["txHash"] == "0xfeed"


def test_admin_complete_without_body_uses_sentinel(client: TestClient):
    order = _create(client, asset="BTC", network="BTC")
    r = client.post(f"/admin/order/{order['orderId']}/complete")
    assert r.status_code == 200
    assert r.json()["order"]["txHash"] == "Manual Transfer"


def test_admin_complete_unknown(client: TestClient):
    r = client.post("/admin/order/ord-nope/complete", json={})
    assert r.status_code == 404


def test_admin_secret_enforced(client: TestClient, monkeypatch):
    monkeypatch.setattr(deps, "settings", Settings(admin_secret="s3cret"))
    assert client.get("/admin/orders").status_code == 403
    assert client.get("/admin/orders", headers={"X-Admin-Secret": "wrong"}).status_code == 403
    assert client.get("/admin/orders", headers={"X-Admin-Secret": "s3cret"}).status_code == 200
