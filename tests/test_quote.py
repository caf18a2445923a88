"""Quote engine: fiat/crypto arithmetic, FX table, price fallbacks."""
import httpx
import pytest

from app.core.errors import ValidationError
from app.services.quote import CoinGeckoPriceSource, QuoteEngine, fiat_rate_to_usd

from conftest import StaticPriceSource, make_settings


@pytest.mark.asyncio
async def test_quote_stablecoin_at_one_dollar(prices):
    q = await QuoteEngine(prices).quote(10, "USD", "USDT")
    assert q.crypto_amount == "10.000000"
    assert q.fiat_amount_usd == 10.0
    assert q.unit_price == 1.0
    assert q.fx_rate == 1.0


@pytest.mark.asyncio
async def test_quote_converts_fiat_to_usd_first(prices):
    q = await QuoteEngine(prices).quote("100", "eur", "btc")
    assert q.fiat_currency == "EUR"
    assert q.asset == "BTC"
    assert q.fx_rate == 1.08
    assert q.fiat_amount_usd == 108.0
    assert q.crypto_amount == f"{108.0 / 65000:.6f}"


def test_unknown_fiat_currency_defaults_to_one():
    assert fiat_rate_to_usd("XYZ") == 1.0
    assert fiat_rate_to_usd(None) == 1.0
    assert fiat_rate_to_usd("gbp") == 1.27


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [None, "", "abc", 0, -5, "nan"])
async def test_quote_rejects_invalid_amount(prices, amount):
    with pytest.raises(ValidationError) as exc:
        await QuoteEngine(prices).quote(amount, "USD", "BTC")
    assert exc.value.message == "Invalid amount"


@pytest.mark.asyncio
async def test_quote_from_crypto_rejects_invalid_quantity(prices):
    with pytest.raises(ValidationError) as exc:
        await QuoteEngine(prices).quote_from_crypto(0, "USD", "BTC")
    assert exc.value.message == "Invalid quantity"


@pytest.mark.asyncio
async def test_quote_from_crypto(prices):
    q = await QuoteEngine(prices).quote_from_crypto("0.5", "EUR", "ETH")
    assert q.fiat_amount_usd == 1300.0
    assert q.fiat_amount == round(1300.0 / 1.08, 2)
    assert q.crypto_amount == "0.500000"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount,currency,asset", [(100, "EUR", "ETH"), (10, "USD", "USDT"), (2500, "GBP", "BTC"), (999.99, "JPY", "ETH")])
async def test_round_trip_within_rounding(prices, amount, currency, asset):
    engine = QuoteEngine(prices)
    q = await engine.quote(amount, currency, asset)
    back = await engine.quote_from_crypto(q.crypto_amount, currency, asset)
    # crypto side is rounded to 6 decimals, fiat side to 2
    tolerance = (0.5e-6 * q.unit_price) / q.fx_rate + 0.005 + 1e-9
    assert abs(back.fiat_amount - amount) <= tolerance


@pytest.mark.asyncio
async def test_unreachable_price_source_uses_fallback():
    source = StaticPriceSource(error=httpx.ConnectTimeout("timed out"))
    q = await QuoteEngine(source).quote(130, "USD", "BTC")
    assert q.unit_price == 65000.0
    assert q.crypto_amount == "0.002000"


@pytest.mark.asyncio
async def test_unknown_asset_uses_default_price():
    q = await QuoteEngine(StaticPriceSource()).quote(5, "USD", "FOO")
    assert q.unit_price == 1.0
    assert q.crypto_amount == "5.000000"


@pytest.mark.asyncio
async def test_coingecko_source_parses_and_caches():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        assert request.url.params["ids"] == "bitcoin"
        assert request.url.params["vs_currencies"] == "usd"
        return httpx.Response(200, json={"bitcoin": {"usd": 70123.5}})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    source = CoinGeckoPriceSource(make_settings(price_cache_ttl_seconds=60), client=client)
    assert await source.usd_price("BTC") == 70123.5
    assert await source.usd_price("BTC") == 70123.5
    assert len(calls) == 1
    assert await source.usd_price("NOPE") is None
    await source.aclose()


@pytest.mark.asyncio
async def test_coingecko_bad_payload_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": {"error_code": 429}})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    engine = QuoteEngine(CoinGeckoPriceSource(make_settings(), client=client))
    assert await engine.unit_price("ETH") == 2600.0


@pytest.mark.asyncio
async def test_coingecko_http_error_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    engine = QuoteEngine(CoinGeckoPriceSource(make_settings(), client=client))
    assert await engine.unit_price("SOL") == 150.0
