"""
Application entry point with calendar transport lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.middleware import RequestContextMiddleware
from app.routes import calendar, health
from app.services.calendar.google_client import google_calendar_service

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL, fmt=settings.LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        **settings.get_layout_config(),
    )

    yield

    logger.info("Application shutting down")
    try:
        await google_calendar_service.close()
    except Exception as e:
        logger.error("Error closing calendar transport", error=str(e))
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Tracker Calendar Core",
    description="Multi-account calendar aggregation and day/week grid layout",
    version="0.1.0",
    lifespan=lifespan,
)

# Request id on request.state, log context and response headers
app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(calendar.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
