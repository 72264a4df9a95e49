"""Cardbox API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CardboxError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Services (store, collaborators, engine) built on startup via lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cardbox.api.error_handlers import register_error_handlers
from cardbox.api.routes import card_intake, cards, health, pickup
from cardbox.config import get_settings
from cardbox.infrastructure.observability import setup_logging
from cardbox.services.container import init_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_services(settings)
    logger.info("Cardbox API started")
    yield
    logger.info("Cardbox API shutting down")


app = FastAPI(
    title="Cardbox API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(card_intake.router)
app.include_router(cards.router)
app.include_router(pickup.router)

register_error_handlers(app)
