from .order import CompleteOrderRequest, CompleteOrderResponse, OrderCreate, OrderResponse
from .payment import (
    CardPaymentRequest,
    CreateRedirectPaymentRequest,
    CreateRedirectPaymentResponse,
    PaymentResult,
)
from .quote import CryptoQuoteRequest, QuoteRequest, QuoteResponse

__all__ = [
    "CardPaymentRequest",
    "CompleteOrderRequest",
    "CompleteOrderResponse",
    "CreateRedirectPaymentRequest",
    "CreateRedirectPaymentResponse",
    "CryptoQuoteRequest",
    "OrderCreate",
    "OrderResponse",
    "PaymentResult",
    "QuoteRequest",
    "QuoteResponse",
]
