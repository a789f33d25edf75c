from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from services.busy_times.api import busy_times_router
from services.busy_times.models import close_db
from services.busy_times.settings import get_settings
from services.common.http_errors import register_exception_handlers
from services.common.logging_config import (
    create_request_logging_middleware,
    get_logger,
    log_service_shutdown,
    log_service_startup,
    setup_service_logging,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()

    setup_service_logging(
        service_name="busy-times",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )

    log_service_startup(
        "busy-times",
        version="0.1.0",
        concurrent_lookups=settings.busy_times_concurrent_lookups,
        partial_calendar_results=settings.allow_partial_calendar_results,
    )
    yield
    await close_db()
    log_service_shutdown("busy-times")


app = FastAPI(
    title="Busy Times Service",
    version="0.1.0",
    description="Computes when a user is busy from bookings and connected calendars.",
    lifespan=lifespan,
)

app.middleware("http")(create_request_logging_middleware())

register_exception_handlers(app)

app.include_router(busy_times_router, prefix="/v1/busy-times", tags=["busy-times"])


@app.get("/")
def root() -> dict:
    return {"message": "Welcome to the Busy Times Service"}


@app.get("/health")
def health() -> dict:
    logger.info("Health check endpoint accessed")
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "services.busy_times.main:app",
        host="0.0.0.0",
        port=8005,
        log_level=settings.log_level.lower(),
        access_log=False,  # Request logging happens in middleware
    )
