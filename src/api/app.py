"""
FastAPI application factory.

* Registers routes for rides, published trips, accounts and admin.
* Maps core errors onto HTTP status codes with a ``{detail, code}`` body.
* Starts / stops the background expiry worker via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import accounts, admin, rides, trips
from src.config import settings
from src.domain.errors import CoreError
from src.infrastructure.redis_client import close_redis
from src.workers import expiry as _expiry

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the expiry worker on startup; stop it and Redis on shutdown."""
    if settings.expiry_enabled:
        await _expiry.start_expiry_loop()
    yield
    if settings.expiry_enabled:
        await _expiry.stop_expiry_loop()
    await close_redis()


async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Core API",
        description=(
            "On-demand ride requests with a role-gated lifecycle, seat "
            "booking on driver-published trips, and exactly-once wallet, "
            "earnings and rating settlement."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(CoreError, core_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(accounts.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
