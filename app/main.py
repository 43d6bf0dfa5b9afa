import asyncio
import importlib
import logging
import uuid
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from app.config import settings
from app.logging_setup import TRACE_ID_CTX, setup_logging
from app.services.hold_sweeper import run_sweeper
from app.services.ledger_provider import get_ledger
from app.services.seat_ledger import (
    HoldExpired,
    HoldMismatch,
    InvalidRequest,
    LedgerError,
    NotHeld,
    SeatConflict,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

LEDGER_ERROR_STATUS = {
    SeatConflict: 409,
    HoldExpired: 409,
    HoldMismatch: 409,
    NotHeld: 409,
    InvalidRequest: 422,
    StoreUnavailable: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if settings.SWEEPER_ENABLED:
        sweeper = asyncio.create_task(run_sweeper(get_ledger(), settings.SWEEP_INTERVAL_SECONDS))
    yield
    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# initialize logging and Sentry
setup_logging()
if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN)
    app.add_middleware(SentryAsgiMiddleware)


@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
    TRACE_ID_CTX.set(trace_id)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    return response


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = LEDGER_ERROR_STATUS.get(type(exc), 409)
    if status_code >= 500:
        logger.warning("Seat store unavailable", extra={"path": request.url.path, "detail": exc.message})
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message, "seat_ids": exc.seat_ids},
    )


# List of module names to include as routers
MODULES = [
    "seats",
    "buses",
    "bookings",
    "reviews",
    "admin",
]


for mod in MODULES:
    pkg = importlib.import_module(f"app.modules.{mod}.router")
    app.include_router(pkg.router, prefix=f"/{mod}", tags=[mod])


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "status": "ok"}


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    if settings.LEDGER_BACKEND.lower() == "redis":
        from app.redis_client import redis_client

        try:
            await redis_client.ping()
        except Exception:
            return Response(status_code=503, content="redis unavailable")
    return {"status": "ready"}
