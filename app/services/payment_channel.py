"""Settlement channels: shared receipt/instrument types and the authorize contract."""
from dataclasses import dataclass, field
from datetime import datetime

from app.models import CryptoOrder, utcnow


@dataclass(frozen=True)
class Receipt:
    transaction_id: str
    auth_code: str | None = None
    settled_at: datetime = field(default_factory=utcnow)
    # Card channels only; the full number is never kept
    card_last4: str | None = None
    card_holder: str | None = None


@dataclass(frozen=True)
class CardDetails:
    card_number: str
    expiry: str
    cvv: str | None = None
    card_holder: str | None = None

    def __repr__(self) -> str:
        # keeps PAN and CVV out of logs and tracebacks
        digits = "".join(c for c in self.card_number or "" if c.isdigit())
        return f"CardDetails(last4={digits[-4:]!r}, expiry={self.expiry!r})"


@dataclass(frozen=True)
class RedirectApproval:
    """What the redirect wallet sends back to the success callback."""
    payment_id: str
    payer_id: str


class PaymentChannel:
    """authorize(order, instrument) -> Receipt, or raises PaymentError with a classified code."""

    name = ""

    async def authorize(self, order: CryptoOrder, instrument) -> Receipt:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
