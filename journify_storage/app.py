"""
Application composition.

Builds one storage service, session manager and data service that share
a store, an event bus and a clock, replacing process-wide singletons
with explicit instances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .auth import MockUserDirectory, SessionManager, TokenService
from .auth.tokens import TOKEN_SECRET_FILE_NAME
from .config import JournifyConfig, load_config
from .data import DataService
from .events import EventBus
from .logging_utils import get_storage_logger
from .storage import FileStore, KeyValueStore, MemoryStore, StorageService
from .utils import Clock

logger = get_storage_logger("app")


@dataclass
class JournifyApp:
    """The wired services of one application context."""

    config: JournifyConfig
    events: EventBus
    storage: StorageService
    sessions: SessionManager
    data: DataService

    async def close(self) -> None:
        """Stop timers and watchers and release the store."""
        await self.data.close()
        await self.sessions.close()
        await self.storage.close()
        logger.debug("Application closed")

    async def __aenter__(self) -> JournifyApp:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def create_store(config: JournifyConfig) -> KeyValueStore:
    """Store selected by ``config.storage_backend``."""
    if config.storage_backend == "memory":
        return MemoryStore(quota_bytes=config.quota_bytes)
    return FileStore(config.resolved_storage_path, quota_bytes=config.quota_bytes)


async def create_app(
    config: JournifyConfig | None = None,
    store: KeyValueStore | None = None,
    clock: Clock | None = None,
    events: EventBus | None = None,
    watch_interval: float | None = None,
) -> JournifyApp:
    """Build and initialize every service.

    Args:
        config: Settings (None = ``load_config()``)
        store: Key-value store to use instead of the configured one
        clock: Source of "now" shared by all services
        events: Event bus shared by all services
        watch_interval: Poll a file store for changes made by other
            processes every this many seconds (None = don't poll)

    Returns:
        Initialized application
    """
    config = config or load_config()
    clock = clock or Clock()
    events = events or EventBus()

    if config.debug:
        logging.getLogger("journify_storage").setLevel(logging.DEBUG)

    storage = StorageService(
        store or create_store(config), config=config, events=events, clock=clock
    )
    await storage.initialize()

    token_secret = config.token_secret or await storage.persistent_secret(TOKEN_SECRET_FILE_NAME)
    tokens = TokenService(
        secret=token_secret,
        clock=clock,
        auth_ttl_seconds=config.auth_token_ttl_seconds,
        refresh_ttl_seconds=config.refresh_token_ttl_seconds,
    )
    users = MockUserDirectory(
        clock=clock,
        bcrypt_rounds=config.bcrypt_rounds,
        seed_demo_users=config.seed_demo_users,
    )
    sessions = SessionManager(storage, tokens, users, events=events, config=config, clock=clock)
    data = DataService(
        storage,
        events=events,
        config=config,
        clock=clock,
        user_provider=lambda: sessions.current_user,
    )

    await data.initialize()
    await sessions.initialize()

    if watch_interval is not None and isinstance(storage.store, FileStore):
        storage.store.start_watching(watch_interval)

    logger.info(
        f"Journify storage ready (backend={type(storage.store).__name__}, "
        f"degraded={storage.degraded}, version={config.app_version})"
    )
    return JournifyApp(config=config, events=events, storage=storage, sessions=sessions, data=data)
