"""StudyHub Billing — FastAPI application entry point."""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.billing import router as billing_router
from app.api.v1.coupons import router as coupons_router
from app.api.v1.payments import router as payments_router
from app.api.v1.webhooks import router as webhooks_router
from app.billing.cache import TTLCache
from app.config import settings

# Configure root logger so all app.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    yield
    # Shutdown: dispose engine connections
    from app.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Plans, coupons, Razorpay checkout and subscription activation for StudyHub.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Plan listings change rarely; served from memory for a short TTL
app.state.plans_cache = TTLCache(ttl=settings.plans_cache_ttl_seconds)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    """Tag every request with a correlation id for tracing across logs."""
    correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer unexpected failures with a 500 that operators can trace."""
    correlation_id = getattr(request.state, "correlation_id", None) or uuid.uuid4().hex
    logger.error(
        "Unhandled error [%s] %s %s",
        correlation_id,
        request.method,
        request.url.path,
        exc_info=exc,
    )
    body = {"error": "Internal server error", "correlation_id": correlation_id}
    if settings.debug_api_errors:
        body["details"] = f"{type(exc).__name__}: {exc}"
    return JSONResponse(
        status_code=500,
        content=body,
        headers={CORRELATION_HEADER: correlation_id},
    )


# Routers
app.include_router(billing_router)
app.include_router(coupons_router)
app.include_router(payments_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
