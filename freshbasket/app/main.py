"""
FastAPI Application Entry Point.

Backend for FreshBasket order delivery: orders, agent assignment and the
live location store that agent dashboards publish to and customers poll.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from freshbasket.app.core.config import settings
from freshbasket.app.api.v1.router import router as api_v1_router
from freshbasket.app.core.observability import ObservabilityMiddleware, configure_logging
from freshbasket.app.core.redis_client import ping_redis
from freshbasket.app.db.session import engine, Base
from freshbasket.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from freshbasket.app.models.user import User  # noqa: F401
from freshbasket.app.models.order import Order  # noqa: F401
from freshbasket.app.models.audit_log import AuditLog  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup."""
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Order delivery and live agent tracking for FreshBasket",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Redis being down degrades logout but not tracking, so it is reported
    rather than failing the check.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to FreshBasket Delivery Tracking API",
        "docs": "/docs",
        "health": "/health",
    }
