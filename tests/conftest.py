"""
Shared test configuration and fixtures.

Provides a manually advanced clock and fast-hashing configuration so
that token expiry, cache TTLs and streaks can be tested deterministically.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime

import pytest

from journify_storage import (
    EventBus,
    JournifyApp,
    JournifyConfig,
    MemoryStore,
    StorageService,
    create_app,
)
from journify_storage.utils import Clock

# 2025-01-03 12:00:00 UTC
START_TIME = datetime(2025, 1, 3, 12, 0, tzinfo=UTC).timestamp()


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: float = START_TIME) -> None:
        self._now = start

    def time(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def config() -> JournifyConfig:
    """Memory-backed config with cheap password hashing and fixed secrets."""
    return JournifyConfig(
        storage_backend="memory",
        bcrypt_rounds=4,
        token_secret="test-token-secret",
        encryption_key="test-encryption-key",
    )


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
async def storage(
    memory_store: MemoryStore,
    config: JournifyConfig,
    events: EventBus,
    clock: ManualClock,
) -> AsyncIterator[StorageService]:
    service = StorageService(memory_store, config=config, events=events, clock=clock)
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
async def app(config: JournifyConfig, clock: ManualClock) -> AsyncIterator[JournifyApp]:
    application = await create_app(config, store=MemoryStore(), clock=clock)
    yield application
    await application.close()
