from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class OrderCreate(BaseModel):
    """All fields optional here: missing ones are reported as 400 by the lifecycle controller."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    fiat_amount: float | str | None = None
    fiat_currency: str | None = None
    asset: str | None = None
    network: str | None = None
    wallet_address: str | None = None
    country: str | None = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    order_id: str
    status: str
    asset: str
    network: str
    fiat_amount: float
    fiat_currency: str
    fiat_amount_usd: float
    crypto_amount: str
    wallet_address: str
    country: str
    payment_channel: str | None = None
    card_last4: str | None = None
    card_holder: str | None = None
    payment_id: str | None = None
    auth_code: str | None = None
    paid_at: datetime | None = None
    tx_hash: str | None = None
    completed_at: datetime | None = None
    message: str
    created_at: datetime


class CompleteOrderRequest(BaseModel):
    """Admin: tx hash of an off-system transfer (optional)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tx_hash: str | None = None


class CompleteOrderResponse(BaseModel):
    success: bool = True
    order: OrderResponse
