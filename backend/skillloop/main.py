"""SkillLoop API — FastAPI application: wiring only, no business rules.

Invariants:
    - Every router is listed below; nothing is discovered at import time
    - All failures leave through api/error_handlers as the {"error": {...}} envelope
    - Logging and the store are configured in the lifespan, before the first request

Design Decisions:
    - Lifespan over @app.on_event: one place owns startup and shutdown
    - CORS origins come from settings: the web client and the wallet gateway differ per deployment
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillloop.api.error_handlers import register_error_handlers
from skillloop.api.routes import (
    engagement, health, learning_requests, session_progress, sessions, users,
)
from skillloop.config import get_settings
from skillloop.infrastructure import database
from skillloop.infrastructure.observability import setup_logging

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
    logger.info(
        f"SkillLoop API started (registration grant {settings.initial_token_balance:g} SKL)",
    )
    yield
    if database.db_manager:
        await database.db_manager.dispose()
    logger.info("SkillLoop API shutting down")


app = FastAPI(
    title="SkillLoop API", version="1.0.0", lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(users.router)
app.include_router(learning_requests.router)
app.include_router(sessions.router)
app.include_router(session_progress.router)
app.include_router(engagement.reviews_router)
app.include_router(engagement.certificates_router)
app.include_router(engagement.notifications_router)

register_error_handlers(app)
