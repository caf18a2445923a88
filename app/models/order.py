from datetime import datetime, timezone
from enum import Enum

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    FAILED = "failed"  # payment never completed; not written by the payment flow


class CryptoOrder(SQLModel, table=True):
    """Fiat -> crypto purchase. Quote fields are frozen at creation; payment and payout fields are written once."""

    order_id: str = Field(primary_key=True)
    status: str = Field(default=OrderStatus.PENDING.value, index=True)  # pending | paid | completed | failed
    asset: str
    network: str
    fiat_amount: float
    fiat_currency: str = "USD"
    fiat_amount_usd: float
    crypto_amount: str  # 6 decimals, locked at creation (never re-quoted)
    wallet_address: str
    country: str
    # Payment (set once authorization succeeds)
    payment_channel: str | None = None  # card_direct | paypal
    card_last4: str | None = Field(default=None, max_length=4)
    card_holder: str | None = None
    payment_id: str | None = Field(default=None, index=True)
    auth_code: str | None = None
    paid_at: datetime | None = None
    # Payout (set once crypto is sent)
    tx_hash: str | None = None
    completed_at: datetime | None = None
    message: str = ""
    created_at: datetime = Field(default_factory=utcnow, index=True)
