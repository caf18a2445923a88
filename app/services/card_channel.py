"""Direct card authorization: Luhn + expiry checks, then a simulated or live (NMI direct post) sale."""
import asyncio
import logging
import re
import secrets
import string
from datetime import date
from urllib.parse import parse_qs

import httpx

from app.core.config import Settings
from app.core.errors import PaymentError
from app.models import CryptoOrder, utcnow

from .payment_channel import CardDetails, PaymentChannel, Receipt

log = logging.getLogger("crypbuy.card")

_EXPIRY_RE = re.compile(r"^\s*(\d{1,2})\s*/\s*(\d{2}|\d{4})\s*$")
_TX_ALPHABET = string.ascii_uppercase + string.digits


def sanitize_card_number(number: str | None) -> str:
    return re.sub(r"[\s-]", "", number or "")


def is_valid_card_number(number: str | None) -> bool:
    """Luhn checksum over the digits, spaces and dashes ignored."""
    digits = sanitize_card_number(number)
    if not digits or not digits.isdigit():
        return False
    total = 0
    for i, ch in enumerate(reversed(digits)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def check_expiry(expiry: str | None, today: date | None = None) -> tuple[int, int]:
    """Returns (month, two-digit year); raises invalid_instrument / expired_instrument."""
    m = _EXPIRY_RE.match(expiry or "")
    if not m:
        raise PaymentError("invalid_instrument", "Invalid expiry date format (MM/YY)")
    month, year = int(m.group(1)), int(m.group(2)[-2:])
    if not 1 <= month <= 12:
        raise PaymentError("invalid_instrument", "Invalid expiry date format (MM/YY)")
    today = today or date.today()
    current_year = today.year % 100
    if year < current_year or (year == current_year and month < today.month):
        raise PaymentError("expired_instrument", "Card has expired")
    return month, year


class DirectCardChannel(PaymentChannel):
    name = "card_direct"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.mode = settings.card_mode
        self.delay_seconds = settings.card_auth_delay_seconds
        self._gateway_url = settings.card_gateway_url
        self._api_key = settings.card_gateway_api_key
        self._timeout = settings.card_gateway_timeout_seconds
        self._client = client

    async def authorize(self, order: CryptoOrder, instrument: CardDetails) -> Receipt:
        if not is_valid_card_number(instrument.card_number):
            raise PaymentError("invalid_instrument", "Invalid card number. Please check your digits.")
        month, year = check_expiry(instrument.expiry)
        last4 = sanitize_card_number(instrument.card_number)[-4:]

        if self.mode == "live":
            return await self._live_sale(order, instrument, month, year, last4)
        if self.mode == "simulation":
            return await self._simulated_sale(order, instrument, last4)
        raise PaymentError("gateway_unavailable", f"Unknown card mode: {self.mode}")

    async def _simulated_sale(self, order: CryptoOrder, card: CardDetails, last4: str) -> Receipt:
        # Bank authorization latency
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        tx_id = "tx_" + "".join(secrets.choice(_TX_ALPHABET) for _ in range(12))
        auth_code = str(100000 + secrets.randbelow(900000))
        log.info("Simulated card approval: order=%s last4=%s tx=%s", order.order_id, last4, tx_id)
        return Receipt(
            transaction_id=tx_id,
            auth_code=auth_code,
            settled_at=utcnow(),
            card_last4=last4,
            card_holder=card.card_holder,
        )

    async def _live_sale(self, order: CryptoOrder, card: CardDetails, month: int, year: int, last4: str) -> Receipt:
        if not self._api_key:
            raise PaymentError("gateway_unavailable", "Live card gateway is not configured.")
        data = {
            "security_key": self._api_key,
            "type": "sale",
            "ccnumber": sanitize_card_number(card.card_number),
            "ccexp": f"{month:02d}{year:02d}",
            "cvv": card.cvv or "",
            "amount": f"{order.fiat_amount:.2f}",
            "currency": order.fiat_currency,
            "orderid": order.order_id,
        }
        try:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=self._timeout)
            r = await self._client.post(self._gateway_url, data=data, timeout=self._timeout)
            r.raise_for_status()
        except httpx.HTTPError as e:
            log.error("Card gateway error: order=%s %s", order.order_id, type(e).__name__)
            raise PaymentError("gateway_unavailable", "Card gateway unavailable. Please try again later.")

        result = {k: v[0] for k, v in parse_qs(r.text).items()}
        code = result.get("response")
        if code == "1":
            return Receipt(
                transaction_id=result.get("transactionid") or "",
                auth_code=result.get("authcode") or None,
                settled_at=utcnow(),
                card_last4=last4,
                card_holder=card.card_holder,
            )
        reason = result.get("responsetext") or "Transaction declined by issuer"
        log.warning("Card declined: order=%s response=%s text=%s", order.order_id, code, reason)
        if code == "2":
            raise PaymentError("declined", "Transaction declined by issuer")
        raise PaymentError("gateway_unavailable", "Card gateway error. Please try again later.")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
