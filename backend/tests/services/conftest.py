"""Shared fixtures for engine, box bridge and route tests.

Fakes replace the network collaborators; the store and directory are the real
in-memory implementations.
"""

import random

import pytest
from httpx import ASGITransport, AsyncClient

from cardbox.infrastructure.card_store import InMemoryCardStore
from cardbox.infrastructure.owner_directory import StaticOwnerDirectory
from cardbox.main import app
from cardbox.services.box_bridge import BoxBridge
from cardbox.services.card_lifecycle import CardLifecycleEngine
from cardbox.services.container import Services, get_services
from tests.services.fakes import (
    KNOWN_EMAIL, KNOWN_ID, FakeClock, FakeExtractor, FakeNotifier,
)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryCardStore()


@pytest.fixture
def engine(store, notifier, extractor, clock):
    return CardLifecycleEngine(
        store,
        StaticOwnerDirectory({KNOWN_ID: KNOWN_EMAIL}),
        notifier,
        extractor,
        ocr_timeout_seconds=0.2,
        notify_timeout_seconds=0.2,
        max_image_bytes=1024,
        rng=random.Random(42),
        clock=clock,
    )


@pytest.fixture
def bridge(engine):
    return BoxBridge(engine, open_request_ttl_seconds=120)


@pytest.fixture
def services(engine, bridge):
    return Services(engine=engine, box_bridge=bridge, staff_token=None)


@pytest.fixture
async def client(services):
    """HTTP client against the app with the service container overridden."""
    app.dependency_overrides[get_services] = lambda: services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
