"""
PageKit FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from backend.config import settings
from backend.routes import pages as pages_routes
from backend.services.pages import page_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Configure logging
    - Open the document store and the outbound JSON client
    - Close both on shutdown
    """
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await page_service.start()
    logger.info("page service started (%s)", "postgres" if settings.use_postgres else "memory")

    yield

    # Shutdown
    await page_service.stop()
    logger.info("page service stopped")


app = FastAPI(
    title="PageKit",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(pages_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}


# UI kit stylesheet and assets referenced by rendered pages
_STATIC = Path(__file__).parent.parent / "static"

if _STATIC.is_dir():
    app.mount("/static", StaticFiles(directory=str(_STATIC)), name="static")
