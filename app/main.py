from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.courses import router as courses_router
from app.api.health import router as health_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.payments import router as payments_router
from app.api.progress import router as progress_router
from app.core.config import SETTINGS
from app.core.errors import AppError
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.services.payment_gateway import RazorpayClient

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan_payments(app: FastAPI) -> AsyncGenerator[None, None]:
    if not SETTINGS.payments_configured:
        logger.warning("Razorpay credentials not configured, payments disabled")
        app.state.payment_gateway = None
        yield
        return

    client = RazorpayClient(
        SETTINGS.razorpay_key_id or "",
        SETTINGS.razorpay_key_secret or "",
        base_url=SETTINGS.razorpay_base_url,
        timeout_seconds=SETTINGS.payment_timeout_seconds,
    )
    app.state.payment_gateway = client
    logger.info("Razorpay client ready key_id=%s", client.key_id)
    try:
        yield
    finally:
        await client.aclose()
        app.state.payment_gateway = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order of startup.
    async with lifespan_db():
        async with lifespan_redis():
            async with lifespan_payments(app):
                yield


app = FastAPI(
    title="course-marketplace",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


# ---------------------------------------------------------------------------
# Error envelope: {"status": "fail"|"error", "message": "..."}
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "fail" if status_code < 500 else "error",
            "message": message,
        },
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_body(), headers=exc.headers
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _envelope(status.HTTP_422_UNPROCESSABLE_CONTENT, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(payments_router)
app.include_router(progress_router)

logger.info(
    "course-marketplace started  env=%s log_level=%s port=%d docs=%s payments=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    "on" if SETTINGS.payments_configured else "off",
)
