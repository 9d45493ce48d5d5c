"""
Main FastAPI application for the creator platform payments API.
Serves health, feed (with per-viewer access), orders/purchases, wallets, admin fee settings and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import admin, feed, health, orders, wallets
from app.core.config import settings
from app.core.logging import configure_logging
from app.services.payments.errors import PaymentError
from app.utils.metrics import router as metrics_router


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Creator Payments API",
    description="Content access and Telegram Stars payments for creator posts",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid4().hex
    started = time.perf_counter()
    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    if request.url.path not in ("/health", "/metrics"):
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
    return response


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "payment_error",
            extra={"path": request.url.path, "status_code": exc.http_status, "error": exc.message},
        )
    return JSONResponse(status_code=exc.http_status, content={"error": exc.message, "code": exc.code})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(feed.router)
app.include_router(orders.router)
app.include_router(wallets.router)
app.include_router(admin.router)
app.include_router(metrics_router)
