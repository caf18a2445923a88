"""Redirect wallet (PayPal) checkout: create, success callback, cancel."""
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates

from app.api.deps import get_controller
from app.core.errors import ExchangeError
from app.core.rate_limit import RATE_LIMIT, limiter
from app.models import OrderStatus
from app.schemas import CreateRedirectPaymentRequest, CreateRedirectPaymentResponse
from app.services.lifecycle import OrderLifecycleController
from app.services.payment_channel import RedirectApproval
from app.services.paypal_channel import PayPalWalletChannel

router = APIRouter(prefix="/paypal", tags=["paypal"])
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
log = logging.getLogger("crypbuy.paypal")


@router.post("/create-payment", response_model=CreateRedirectPaymentResponse)
@limiter.limit(RATE_LIMIT)
async def create_payment(
    request: Request,
    body: CreateRedirectPaymentRequest,
    controller: OrderLifecycleController = Depends(get_controller),
):
    approval_url = await controller.begin_redirect_payment(body.order_id, PayPalWalletChannel.name)
    return {"approval_url": approval_url}


@router.get("/success", response_class=HTMLResponse)
async def success(
    request: Request,
    order_id: str = Query("", alias="orderId"),
    payment_id: str = Query("", alias="paymentId"),
    payer_id: str = Query("", alias="PayerID"),
    controller: OrderLifecycleController = Depends(get_controller),
):
    """Buyer returns here from PayPal; executes the approved payment."""
    try:
        order = await controller.submit_payment(
            order_id,
            PayPalWalletChannel.name,
            RedirectApproval(payment_id=payment_id, payer_id=payer_id),
        )
    except ExchangeError as e:
        log.warning("PayPal success callback failed: order=%s code=%s %s", order_id, e.code, e.message)
        text = "Order not found" if e.code == "not_found" else "Payment execution failed"
        return PlainTextResponse(text, status_code=e.status_code)
    completed = order.status == OrderStatus.COMPLETED.value
    return templates.TemplateResponse(
        request,
        "paypal_success.html",
        {"order": order, "completed": completed, "status": order.status},
    )


@router.get("/cancel", response_class=PlainTextResponse)
def cancel():
    return PlainTextResponse("Payment cancelled")
