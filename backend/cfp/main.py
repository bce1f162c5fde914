"""CFP API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CfpError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py to keep this module a wiring list
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cfp.infrastructure import database
from cfp.infrastructure.database import init_db
from cfp.infrastructure.observability import setup_logging
from cfp.config import get_settings
from cfp.api.error_handlers import register_error_handlers
from cfp.api.routes import (
    health, labels, ratings, reports, schedule, talks, transition_events,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        isolation_level=settings.database_isolation_level,
        lock_timeout_ms=settings.lock_timeout_ms,
        statement_timeout_ms=settings.statement_timeout_ms,
    )
    logger.info("CFP API started")
    yield
    logger.info("CFP API shutting down")
    if database.db_manager is manager:
        await manager.dispose()


app = FastAPI(
    title="Call for Papers API", version="1.0.0", lifespan=lifespan,
)

# CORS from settings
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(health.router)
app.include_router(talks.router)
app.include_router(ratings.router)
app.include_router(labels.router)
app.include_router(schedule.router)
app.include_router(reports.router)
app.include_router(transition_events.router)

register_error_handlers(app)
