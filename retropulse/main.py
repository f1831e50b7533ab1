"""
RetroPulse FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from retropulse import container as container_module
from retropulse import db
from retropulse.config import settings
from retropulse.errors import RetroError
from retropulse.routes import cards as card_routes
from retropulse.routes import reactions as reaction_routes
from retropulse.routes import ws as ws_routes

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool (or fall back to in-memory stores)
    - Install the service container
    - Close database pool on shutdown
    """
    # Startup
    if settings.use_postgres:
        await db.init_pool()
        container_module.set_container(container_module.postgres_container())
        logger.info("main: database pool initialized")
    else:
        container_module.set_container(container_module.memory_container())
        logger.warning("main: DATABASE_URL not set, using in-memory stores")

    yield

    # Shutdown
    container_module.set_container(None)
    if settings.use_postgres:
        await db.close_pool()
        logger.info("main: database pool closed")


app = FastAPI(
    title="RetroPulse",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)


@app.exception_handler(RetroError)
async def retro_error_handler(request: Request, exc: RetroError) -> JSONResponse:
    """Render domain errors as {"detail", "code"} with the error's status."""
    body: dict = {"detail": exc.message, "code": exc.code}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


# Register routes
app.include_router(card_routes.router)
app.include_router(reaction_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
