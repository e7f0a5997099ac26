"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from sqlalchemy import text

import tutorslots.modules  # noqa: F401
from tutorslots.core.config import get_settings
from tutorslots.core.database import SessionLocal, close_engine
from tutorslots.core.metrics import build_metrics_response, instrument_http_request
from tutorslots.modules.booking.router import router as booking_router
from tutorslots.modules.scheduling.eligibility import BookingPolicy
from tutorslots.modules.scheduling.router import router as scheduling_router
from tutorslots.shared.exceptions import register_exception_handlers
from tutorslots.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application startup and shutdown hooks."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    policy = BookingPolicy.from_settings(settings)
    logger.info("Starting %s (%s)", settings.app_name, settings.app_env)
    logger.info(
        "Booking policy: min advance %s min, slot cancel notice %s h, session cancel notice %s h",
        policy.min_advance_minutes,
        policy.slot_cancel_notice_hours,
        policy.session_cancel_notice_hours,
    )
    logger.info(
        "Slot defaults: timezone %s, allowed days %s",
        settings.default_slot_timezone,
        ", ".join(settings.slot_allowed_days),
    )

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_engine()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)
app.middleware("http")(instrument_http_request)

register_exception_handlers(app)

app.include_router(scheduling_router, prefix=settings.api_prefix)
app.include_router(booking_router, prefix=settings.api_prefix)


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    """Return True if DB accepts basic queries."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness probe endpoint with DB dependency check."""
    if not await _is_database_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    return {
        "status": "ready",
        "database": "ok",
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()
