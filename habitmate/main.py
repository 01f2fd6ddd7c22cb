"""habitmate - Social habit tracker with streaks, partner tasks and a friends feed."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from habitmate import __version__
from habitmate.core.db_client import close_connection, init_db
from habitmate.core.logging import configure_logfire, instrument_fastapi
from habitmate.interface.api_router import registry
from habitmate.interface.api_router import router as api_router
from habitmate.interface.api_router import storage_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    await registry.clear()
    await close_connection()
    logger.info("Shutdown complete")


app = FastAPI(
    title="habitmate",
    description="Social habit tracker with streaks, partner tasks and a friends feed",
    version=__version__,
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(api_router)
app.include_router(storage_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
