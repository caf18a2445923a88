"""
Fiat <-> crypto quoting.

USD normalisation uses a static fiat table; the unit price comes from a market price
source (CoinGecko). When the source is unreachable or has no price, a built-in fallback
price is used instead of failing: quotes stay available, accuracy may suffer.
"""
import logging
import time
from dataclasses import dataclass

import httpx

from app.core.config import Settings
from app.core.errors import ValidationError

log = logging.getLogger("crypbuy.quote")

# 1 unit of currency = X USD. Unknown codes count as 1.0.
FIAT_RATES_TO_USD = {
    "USD": 1.0, "EUR": 1.08, "GBP": 1.27, "AED": 0.27, "INR": 0.012, "CNY": 0.14,
    "AUD": 0.66, "CAD": 0.75, "JPY": 0.0067, "BRL": 0.20, "MXN": 0.059, "HKD": 0.13,
    "SGD": 0.74, "NZD": 0.61, "CHF": 1.13, "SEK": 0.096, "NOK": 0.095, "DKK": 0.15,
    "PLN": 0.25, "RUB": 0.011, "ZAR": 0.053, "TRY": 0.031, "KRW": 0.00075, "MYR": 0.21,
    "THB": 0.028, "PHP": 0.018, "IDR": 0.000064, "VND": 0.000041, "SAR": 0.27, "KWD": 3.25,
}

COINGECKO_IDS = {
    "BTC": "bitcoin", "ETH": "ethereum", "USDT": "tether", "XRP": "ripple",
    "BNB": "binancecoin", "SOL": "solana", "USDC": "usd-coin",
    "TRX": "tron", "DOGE": "dogecoin", "ADA": "cardano",
}

# Used when the price source fails
FALLBACK_PRICES_USD = {
    "BTC": 65000.0, "ETH": 2600.0, "USDT": 1.0, "XRP": 0.60,
    "BNB": 600.0, "SOL": 150.0, "USDC": 1.0, "TRX": 0.12,
    "DOGE": 0.16, "ADA": 0.45,
}
DEFAULT_PRICE_USD = 1.0


def fiat_rate_to_usd(code: str | None) -> float:
    return FIAT_RATES_TO_USD.get((code or "USD").strip().upper(), 1.0)


def fallback_price(asset: str) -> float:
    return FALLBACK_PRICES_USD.get(asset, DEFAULT_PRICE_USD)


def _positive_number(raw, message: str) -> float:
    if raw is None or raw == "":
        raise ValidationError(message)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if value != value or value <= 0 or value == float("inf"):
        raise ValidationError(message)
    return value


@dataclass(frozen=True)
class Quote:
    asset: str
    fiat_amount: float
    fiat_currency: str
    fiat_amount_usd: float
    crypto_amount: str  # 6 decimals
    unit_price: float
    fx_rate: float

    # Response field names
    @property
    def rate(self) -> float:
        return self.unit_price

    @property
    def fx_rate_to_usd(self) -> float:
        return self.fx_rate


class CoinGeckoPriceSource:
    """USD spot price from CoinGecko simple/price, cached for a few seconds per coin."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self._url = settings.price_api_url
        self._timeout = settings.price_timeout_seconds
        self._ttl = settings.price_cache_ttl_seconds
        self._client = client or httpx.AsyncClient(timeout=self._timeout)
        self._cache: dict[str, tuple[float, float]] = {}

    async def usd_price(self, asset: str) -> float | None:
        """None for assets without a coin id. Transport/format errors propagate."""
        coin_id = COINGECKO_IDS.get(asset)
        if not coin_id:
            return None
        now = time.monotonic()
        cached = self._cache.get(coin_id)
        if cached and cached[1] > now:
            return cached[0]
        r = await self._client.get(
            self._url,
            params={"ids": coin_id, "vs_currencies": "usd"},
            timeout=self._timeout,
        )
        r.raise_for_status()
        price = float(r.json()[coin_id]["usd"])
        if self._ttl > 0:
            self._cache[coin_id] = (price, now + self._ttl)
        return price

    async def aclose(self) -> None:
        await self._client.aclose()


class QuoteEngine:
    def __init__(self, price_source):
        self.price_source = price_source

    async def unit_price(self, asset: str) -> float:
        try:
            price = await self.price_source.usd_price(asset)
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            log.warning("Price source error for %s: %s", asset, e)
            price = None
        if price is None or price <= 0:
            price = fallback_price(asset)
            log.info("Using fallback price for %s: $%s", asset, price)
        return price

    async def quote(self, fiat_amount, fiat_currency: str | None, asset: str | None) -> Quote:
        """Fiat amount -> crypto amount at the current unit price."""
        amount = _positive_number(fiat_amount, "Invalid amount")
        currency = (fiat_currency or "USD").strip().upper()
        symbol = (asset or "").strip().upper()
        fx_rate = fiat_rate_to_usd(currency)
        amount_usd = amount * fx_rate
        price = await self.unit_price(symbol)
        return Quote(
            asset=symbol,
            fiat_amount=amount,
            fiat_currency=currency,
            fiat_amount_usd=round(amount_usd, 2),
            crypto_amount=f"{amount_usd / price:.6f}",
            unit_price=price,
            fx_rate=fx_rate,
        )

    async def quote_from_crypto(self, crypto_amount, fiat_currency: str | None, asset: str | None) -> Quote:
        """Crypto quantity -> fiat amount. Inverse of quote()."""
        qty = _positive_number(crypto_amount, "Invalid quantity")
        currency = (fiat_currency or "USD").strip().upper()
        symbol = (asset or "").strip().upper()
        fx_rate = fiat_rate_to_usd(currency)
        price = await self.unit_price(symbol)
        amount_usd = qty * price
        return Quote(
            asset=symbol,
            fiat_amount=round(amount_usd / fx_rate, 2),
            fiat_currency=currency,
            fiat_amount_usd=round(amount_usd, 2),
            crypto_amount=f"{qty:.6f}",
            unit_price=price,
            fx_rate=fx_rate,
        )

    async def aclose(self) -> None:
        close = getattr(self.price_source, "aclose", None)
        if close is not None:
            await close()
