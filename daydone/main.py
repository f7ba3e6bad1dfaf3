"""daydone - daily work-hour and task tracker."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from daydone.core.config import constants, settings
from daydone.core.db_client import close_connection, init_db
from daydone.core.logging import configure_logfire, instrument_fastapi
from daydone.interface.api import router as api_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    # Configure logging first so startup logs are captured
    configure_logfire()

    await init_db()
    logger.info("Database initialized", extra={"db_path": settings.sqlite_db_path})
    yield
    # Shutdown
    await close_connection()


app = FastAPI(
    title="daydone",
    description="Daily work-hour and task tracker with leaderboards",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(api_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)
