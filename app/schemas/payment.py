from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CardPaymentRequest(BaseModel):
    """Direct card payment. The card number is only used for authorization, never stored."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str
    card_number: str = ""
    expiry: str = ""
    cvv: str | None = None
    card_holder: str | None = None


class PaymentResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    order_id: str
    status: str
    tx_hash: str | None = None
    message: str
    card_last4: str | None = None


class CreateRedirectPaymentRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str


class CreateRedirectPaymentResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    approval_url: str
