"""Chatly API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery — ExMA anti-pattern)
    - Global error handlers map ChatlyError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup and disposed on shutdown via lifespan
    - Pending notification timers cancelled on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
      (ADR: FastAPI 0.128)
    - External collaborators (identity provider, renderer) configured by the host
      process via configure_collaborators() before serving; readiness reports them
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatly.api.dependencies import shutdown_client_services
from chatly.api.error_handlers import register_error_handlers
from chatly.api.routes import auth, health, notifications, quota
from chatly.config import get_settings
from chatly.infrastructure.observability import setup_logging
import chatly.infrastructure.database as db_module

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db_module.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("Chatly API started")
    yield
    logger.info("Chatly API shutting down")
    await shutdown_client_services()
    if db_module.db_manager:
        await db_module.db_manager.dispose()


app = FastAPI(
    title="Chatly API", version="1.0.0", lifespan=lifespan,
)

# CORS — configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes — explicit registration (ExMA: no convention-over-config)
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(quota.router)
app.include_router(notifications.router)

register_error_handlers(app)
