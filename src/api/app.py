"""
FastAPI application factory.

* Registers routes for reservations and admin.
* Starts / stops the booking scheduler via lifespan events; the handle
  returned by ``BookingScheduler.start`` lives on ``app.state``.
* Maps lifecycle errors to 404 / 409 responses.
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
from src.api.routes import admin, reservations
from src.config import settings
from src.domain.exceptions import (
    DriverNotFound,
    ReservationError,
    ReservationNotFound,
    VehicleNotFound,
)
from src.infrastructure.redis_client import scheduler_lock
from src.workers.scheduler import BookingScheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_NOT_FOUND_ERRORS = (ReservationNotFound, DriverNotFound, VehicleNotFound)


async def reservation_error_handler(request: Request, exc: ReservationError):
    status_code = 404 if isinstance(exc, _NOT_FOUND_ERRORS) else 409
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the booking scheduler on startup; stop it on shutdown."""
    scheduler: BookingScheduler = app.state.scheduler
    if settings.scheduler_enabled:
        app.state.scheduler_handle = await scheduler.start(
            settings.scheduler_interval_minutes
        )
    else:
        logger.info("Booking scheduler disabled")
    yield
    if app.state.scheduler_handle is not None:
        await scheduler.stop(app.state.scheduler_handle)
        app.state.scheduler_handle = None


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Booking API",
        description=(
            "Books rides, assigns drivers and advances each reservation "
            "through its lifecycle.  A background scheduler starts assigned "
            "rides at their pickup time and confirms pending ones shortly "
            "before it."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.scheduler = BookingScheduler(
        lock_factory=scheduler_lock if settings.scheduler_lock_enabled else None
    )
    app.state.scheduler_handle = None

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ReservationError, reservation_error_handler)

    # Routers
    app.include_router(reservations.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
