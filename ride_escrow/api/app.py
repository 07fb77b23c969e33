"""
FastAPI application factory.

* Registers routes for rides, drivers and admin.
* Maps core errors to JSON responses carrying ``detail`` and ``code``.
* Applies rate-limiting middleware.
* Closes the Redis pool on shutdown.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ride_escrow.api.middleware import limiter
from ride_escrow.api.routes import admin, drivers, rides
from ride_escrow.api.schemas import ErrorResponse
from ride_escrow.config import settings
from ride_escrow.domain.errors import RideEscrowError
from ride_escrow.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


# Statuses core errors map to; documented on every router
ERROR_RESPONSES = {
    status_code: {"model": ErrorResponse} for status_code in (402, 403, 404, 409, 502)
}


async def ride_escrow_error_handler(request: Request, exc: RideEscrowError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=str(exc), code=exc.code).model_dump(),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error", code="internal_error"
        ).model_dump(),
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Escrow API",
        description=(
            "Rider/driver ride lifecycle with escrowed fares, a driver "
            "registry, two-way ratings and timeout refunds."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Core errors
    app.add_exception_handler(RideEscrowError, ride_escrow_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers
    for router in (rides.router, rides.riders_router, drivers.router, admin.router):
        app.include_router(router, prefix="/api/v1", responses=ERROR_RESPONSES)

    return app
