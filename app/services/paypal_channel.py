"""
Redirect wallet checkout over the PayPal REST v1 payments API.

Two phases: create_payment() returns the approval URL the buyer is redirected to;
the success callback brings back paymentId + PayerID and authorize() executes the sale.
Nothing is stored locally while the buyer is away; the order stays `pending`.
"""
import logging
import time

import httpx

from app.core.config import Settings
from app.core.errors import PaymentError, ProviderError
from app.models import CryptoOrder, utcnow

from .payment_channel import PaymentChannel, Receipt, RedirectApproval

log = logging.getLogger("crypbuy.paypal")

SUPPORTED_CURRENCIES = frozenset({
    "AUD", "BRL", "CAD", "CNY", "CZK", "DKK", "EUR", "HKD", "HUF",
    "ILS", "JPY", "MYR", "MXN", "TWD", "NZD", "NOK", "PHP", "PLN",
    "GBP", "RUB", "SGD", "SEK", "CHF", "THB", "USD",
})
# PayPal rejects decimals for these
ZERO_DECIMAL_CURRENCIES = frozenset({"HUF", "JPY", "TWD"})

API_BASES = {
    "sandbox": "https://api.sandbox.paypal.com",
    "live": "https://api.paypal.com",
}


def charge_amount(order: CryptoOrder) -> tuple[str, str]:
    """
    (currency, total) to charge. Unsupported currencies are charged as the USD amount
    fixed at quote time. create and execute must send the same pair.
    """
    currency = (order.fiat_currency or "USD").upper()
    if currency in SUPPORTED_CURRENCIES:
        amount = order.fiat_amount
    else:
        currency = "USD"
        amount = order.fiat_amount_usd or order.fiat_amount
    if currency in ZERO_DECIMAL_CURRENCIES:
        return currency, f"{amount:.0f}"
    return currency, f"{amount:.2f}"


class PayPalWalletChannel(PaymentChannel):
    name = "paypal"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self._base = API_BASES.get(settings.paypal_mode, API_BASES["sandbox"])
        self._client_id = settings.paypal_client_id
        self._client_secret = settings.paypal_client_secret
        self._brand_name = settings.paypal_brand_name
        self._return_base = settings.base_url.rstrip("/")
        self._timeout = settings.paypal_timeout_seconds
        self._client = client or httpx.AsyncClient(base_url=self._base, timeout=self._timeout)
        self._token: str | None = None
        self._token_expires = 0.0
        self._web_profile_id: str | None = None
        self._web_profile_tried = False

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    async def _access_token(self) -> str:
        now = time.monotonic()
        if self._token and now < self._token_expires:
            return self._token
        r = await self._client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
            headers={"Accept": "application/json"},
        )
        r.raise_for_status()
        data = r.json()
        self._token = data["access_token"]
        # refresh a minute early
        self._token_expires = now + max(int(data.get("expires_in", 0)) - 60, 0)
        return self._token

    async def _post(self, path: str, payload: dict) -> dict:
        token = await self._access_token()
        r = await self._client.post(path, json=payload, headers={"Authorization": f"Bearer {token}"})
        r.raise_for_status()
        return r.json()

    async def _ensure_web_profile(self) -> str | None:
        """Guest checkout profile (card fields first, no shipping). Created once; failure is not fatal."""
        if self._web_profile_tried:
            return self._web_profile_id
        self._web_profile_tried = True
        payload = {
            "name": f"{self._brand_name}_Guest_{int(time.time() * 1000)}",
            "presentation": {"brand_name": self._brand_name, "locale_code": "US"},
            "input_fields": {"no_shipping": 1, "address_override": 1},
            "flow_config": {"landing_page_type": "billing", "user_action": "commit"},
        }
        try:
            profile = await self._post("/v1/payment-experience/web-profiles", payload)
            self._web_profile_id = profile.get("id")
            log.info("PayPal web profile created: %s", self._web_profile_id)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            log.error("PayPal web profile creation failed: %s", e)
        return self._web_profile_id

    async def create_payment(self, order: CryptoOrder) -> str:
        """Starts a hosted checkout; returns the approval URL."""
        if not self.configured:
            raise ProviderError("PayPal is not configured.")
        currency, total = charge_amount(order)
        payload = {
            "intent": "sale",
            "payer": {"payment_method": "paypal"},
            "redirect_urls": {
                "return_url": f"{self._return_base}/paypal/success?orderId={order.order_id}",
                "cancel_url": f"{self._return_base}/paypal/cancel",
            },
            "transactions": [{
                "item_list": {
                    "items": [{
                        "name": f"{order.crypto_amount} {order.asset}",
                        "sku": order.order_id,
                        "price": total,
                        "currency": currency,
                        "quantity": 1,
                    }]
                },
                "amount": {"currency": currency, "total": total},
                "description": f"Purchase of {order.crypto_amount} {order.asset}",
            }],
        }
        try:
            profile_id = await self._ensure_web_profile()
            if profile_id:
                payload["experience_profile_id"] = profile_id
            payment = await self._post("/v1/payments/payment", payload)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            log.error("PayPal create payment failed: order=%s %s", order.order_id, e)
            raise ProviderError("PayPal payment could not be created.")
        for link in payment.get("links") or []:
            if link.get("rel") == "approval_url":
                return link["href"]
        log.error("PayPal create payment: no approval_url, order=%s", order.order_id)
        raise ProviderError("PayPal did not return an approval URL.")

    async def authorize(self, order: CryptoOrder, instrument: RedirectApproval) -> Receipt:
        """Executes the approved payment (phase two)."""
        if not instrument.payment_id or not instrument.payer_id:
            raise PaymentError("invalid_instrument", "Missing PayPal payment or payer id.")
        if not self.configured:
            raise PaymentError("gateway_unavailable", "PayPal is not configured.")
        currency, total = charge_amount(order)
        payload = {
            "payer_id": instrument.payer_id,
            "transactions": [{"amount": {"currency": currency, "total": total}}],
        }
        try:
            payment = await self._post(f"/v1/payments/payment/{instrument.payment_id}/execute", payload)
        except httpx.HTTPStatusError as e:
            log.error("PayPal execute rejected: order=%s status=%s body=%s", order.order_id, e.response.status_code, e.response.text[:500])
            if e.response.status_code < 500:
                raise PaymentError("declined", "Payment execution failed")
            raise PaymentError("gateway_unavailable", "PayPal unavailable. Please try again later.")
        except (httpx.HTTPError, KeyError, ValueError) as e:
            log.error("PayPal execute failed: order=%s %s", order.order_id, e)
            raise PaymentError("gateway_unavailable", "PayPal unavailable. Please try again later.")
        if payment.get("state") not in (None, "approved"):
            raise PaymentError("declined", "Payment execution failed")
        return Receipt(transaction_id=instrument.payment_id, auth_code=None, settled_at=utcnow())

    async def aclose(self) -> None:
        await self._client.aclose()
