"""CoSnap Lifecycle API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CoSnapError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py to keep this module's imports small
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import cosnap.infrastructure.database as database
from cosnap.api.error_handlers import register_error_handlers
from cosnap.api.routes import flags, health, offers
from cosnap.config import get_settings
from cosnap.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("CoSnap lifecycle API started")
    yield
    if database.db_manager:
        await database.db_manager.dispose()
    logger.info("CoSnap lifecycle API shutting down")


app = FastAPI(
    title="CoSnap Lifecycle API", version="1.0.0", lifespan=lifespan,
)

# CORS origins come from settings
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes, registered explicitly
app.include_router(health.router)
app.include_router(flags.router)
app.include_router(offers.router)

register_error_handlers(app)
