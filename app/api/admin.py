"""Admin: order listing and manual completion."""
from fastapi import APIRouter, Body, Depends

from app.api.deps import get_controller, require_admin
from app.schemas import CompleteOrderRequest, CompleteOrderResponse, OrderResponse
from app.services.lifecycle import OrderLifecycleController

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/orders", response_model=list[OrderResponse])
def list_orders(controller: OrderLifecycleController = Depends(get_controller)):
    """All orders, newest first."""
    return controller.list_orders()


@router.post("/order/{order_id}/complete", response_model=CompleteOrderResponse)
async def complete_order(
    order_id: str,
    body: CompleteOrderRequest | None = Body(default=None),
    controller: OrderLifecycleController = Depends(get_controller),
):
    """Mark as completed after sending the crypto by hand; txHash optional."""
    order = await controller.complete_manually(order_id, body.tx_hash if body else None)
    return {"success": True, "order": order}
