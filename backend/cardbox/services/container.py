"""Service Container — builds the store, collaborators, engine and box bridge once per lifespan.

Invariants:
    - One Services instance per process, created in the FastAPI lifespan
    - Routes reach services only through the get_services dependency, so tests
      override a single dependency to inject fakes

Design Decisions:
    - Module-level singleton initialized on startup (same pattern as a DB session
      manager): no import-time side effects
"""

import logging
from dataclasses import dataclass

from cardbox.config import Settings
from cardbox.infrastructure.anthropic_client import ResilientAnthropicClient
from cardbox.infrastructure.card_ocr import AnthropicCardExtractor
from cardbox.infrastructure.card_store import InMemoryCardStore
from cardbox.infrastructure.email_notifier import SendGridNotifier
from cardbox.infrastructure.owner_directory import StaticOwnerDirectory
from cardbox.services.box_bridge import BoxBridge
from cardbox.services.card_lifecycle import CardLifecycleEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    engine: CardLifecycleEngine
    box_bridge: BoxBridge
    staff_token: str | None = None


def build_services(settings: Settings) -> Services:
    """Wire production collaborators from settings."""
    directory = StaticOwnerDirectory(settings.owner_directory)
    notifier = SendGridNotifier(
        settings.sendgrid_api_key,
        settings.sendgrid_from_email,
        api_url=settings.sendgrid_api_url,
        timeout_seconds=settings.notify_timeout_seconds,
        greeting_name=settings.greeting_name,
        status_page_url=settings.status_page_url,
    )
    extractor = AnthropicCardExtractor(
        ResilientAnthropicClient(
            api_key=settings.anthropic_api_key,
            max_retries=settings.anthropic_max_retries,
            base_delay_ms=settings.anthropic_base_delay_ms,
            max_delay_ms=settings.anthropic_max_delay_ms,
            timeout_seconds=settings.anthropic_timeout_seconds,
        ),
        model=settings.ocr_model,
        max_tokens=settings.ocr_max_tokens,
    )
    engine = CardLifecycleEngine(
        InMemoryCardStore(),
        directory,
        notifier,
        extractor,
        ocr_timeout_seconds=settings.ocr_timeout_seconds,
        notify_timeout_seconds=settings.notify_timeout_seconds,
        max_image_bytes=settings.max_image_bytes,
    )
    logger.info(
        f"Services ready: {len(directory)} directory entries, "
        f"email {'enabled' if notifier.configured else 'disabled'}",
    )
    return Services(
        engine=engine,
        box_bridge=BoxBridge(engine, settings.open_request_ttl_seconds),
        staff_token=settings.staff_token,
    )


# Singleton (initialized on startup)
services: Services | None = None


def init_services(settings: Settings) -> Services:
    global services
    services = build_services(settings)
    return services


def get_services() -> Services:
    """FastAPI dependency for the service container."""
    if services is None:
        raise RuntimeError("Services not initialized")
    return services
