import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from app.api.admin import router as admin_router
from app.api.orders import router as orders_router
from app.api.paypal import router as paypal_router
from app.core.config import settings
from app.core.database import engine, init_db, ping_db
from app.core.errors import ExchangeError
from app.core.rate_limit import limiter
from app.logging import setup_logging
from app.services.lifecycle import build_controller
from app.services.order_store import OrderStore

setup_logging(level=logging.INFO)
log = logging.getLogger("crypbuy")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.controller = build_controller(settings, OrderStore(engine))
    log.info(
        "%s started: card_mode=%s payout_mode=%s paypal=%s",
        settings.app_name,
        settings.card_mode,
        settings.usdt_trc20_mode,
        "configured" if settings.paypal_configured else "NOT configured",
    )
    try:
        yield
    finally:
        await app.state.controller.aclose()


app = FastAPI(
    title=f"{settings.app_name} API",
    description="Fiat to crypto purchase: quotes, orders, payment and payout",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str, code: str | None = None) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code}
    if code:
        body["code"] = code
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s", request.url.path)
    return _error_response(request, 429, "Too many requests. Please wait a minute.", "rate_limited")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(ExchangeError)
def exchange_error_handler(request: Request, exc: ExchangeError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s: path=%s code=%s %s", type(exc).__name__, request.url.path, exc.code, exc.message)
    else:
        log.info("%s: path=%s code=%s %s", type(exc).__name__, request.url.path, exc.code, exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning("Request validation error (422): path=%s method=%s", request.url.path, request.method)
    first = errs[0] if errs else {}
    loc = [str(p) for p in first.get("loc") or [] if p != "body"]
    msg = first.get("msg") or "Invalid request."
    detail = f"{'.'.join(loc)}: {msg}" if loc else msg
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "code": "validation_error", "status_code": 422}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Unexpected server error."})


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(orders_router)
app.include_router(paypal_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "name": settings.app_name,
        "cardMode": settings.card_mode,
        "payoutMode": settings.usdt_trc20_mode,
        "database": "ok" if ping_db() else "error",
    }
