import hmac

from fastapi import Header, HTTPException, Request, status

from app.core.config import settings
from app.services.lifecycle import OrderLifecycleController


def get_controller(request: Request) -> OrderLifecycleController:
    """Controller built in the app lifespan."""
    return request.app.state.controller


def require_admin(x_admin_secret: str | None = Header(default=None)) -> None:
    """Admin endpoints: X-Admin-Secret must match ADMIN_SECRET when one is configured."""
    if not settings.admin_secret:
        return
    if not x_admin_secret or not hmac.compare_digest(x_admin_secret, settings.admin_secret):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized.")
