"""Quotes, order creation and direct card payment."""
from fastapi import APIRouter, Depends, Request

from app.api.deps import get_controller
from app.core.rate_limit import RATE_LIMIT, limiter
from app.schemas import (
    CardPaymentRequest,
    CryptoQuoteRequest,
    OrderCreate,
    OrderResponse,
    PaymentResult,
    QuoteRequest,
    QuoteResponse,
)
from app.services.card_channel import DirectCardChannel
from app.services.lifecycle import OrderLifecycleController
from app.services.payment_channel import CardDetails

router = APIRouter(tags=["orders"])


@router.post("/quote", response_model=QuoteResponse)
@limiter.limit(RATE_LIMIT)
async def quote(
    request: Request,
    body: QuoteRequest,
    controller: OrderLifecycleController = Depends(get_controller),
):
    q = await controller.quotes.quote(body.fiat_amount, body.fiat_currency, body.asset)
    return QuoteResponse.model_validate(q, from_attributes=True)


@router.post("/quote-from-crypto", response_model=QuoteResponse)
@limiter.limit(RATE_LIMIT)
async def quote_from_crypto(
    request: Request,
    body: CryptoQuoteRequest,
    controller: OrderLifecycleController = Depends(get_controller),
):
    q = await controller.quotes.quote_from_crypto(body.crypto_amount, body.fiat_currency, body.asset)
    return QuoteResponse.model_validate(q, from_attributes=True)


@router.post("/order", response_model=OrderResponse)
@limiter.limit(RATE_LIMIT)
async def create_order(
    request: Request,
    body: OrderCreate,
    controller: OrderLifecycleController = Depends(get_controller),
):
    return await controller.create_order(body)


@router.post("/pay", response_model=PaymentResult)
@limiter.limit(RATE_LIMIT)
async def pay(
    request: Request,
    body: CardPaymentRequest,
    controller: OrderLifecycleController = Depends(get_controller),
):
    """Card payment; the response carries only the last 4 digits."""
    card = CardDetails(
        card_number=body.card_number,
        expiry=body.expiry,
        cvv=body.cvv,
        card_holder=(body.card_holder or "").strip() or None,
    )
    return await controller.submit_payment(body.order_id, DirectCardChannel.name, card)
