from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class QuoteRequest(BaseModel):
    """Fiat -> crypto. Amount arrives as number or numeric string; checked by the quote engine."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    fiat_amount: float | str | None = None
    fiat_currency: str | None = "USD"
    asset: str | None = None


class CryptoQuoteRequest(BaseModel):
    """Crypto -> fiat."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    crypto_amount: float | str | None = None
    fiat_currency: str | None = "USD"
    asset: str | None = None


class QuoteResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    asset: str
    fiat_amount: float
    fiat_currency: str
    fiat_amount_usd: float
    crypto_amount: str
    rate: float
    fx_rate_to_usd: float
