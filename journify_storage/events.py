"""
Typed change notifications.

Each event kind has its own channel. Listeners are plain callables or
coroutine functions; a listener that raises is logged and skipped so
that publishers never depend on who is listening.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

Listener = Callable[[E], Awaitable[None] | None]


@dataclass(frozen=True)
class AuthChanged:
    """The session was established, restored or ended."""

    is_authenticated: bool
    user: dict[str, Any] | None = None


@dataclass(frozen=True)
class DataChanged:
    """An entry collection was modified through the data layer."""

    type: str  # "moodEntry", "journalEntry" or "all"
    action: str  # "save", "delete", "cleanup", "import"
    data: Any = None
    timestamp: float = 0.0


@dataclass(frozen=True)
class StorageChanged:
    """A recognized key was changed by another context sharing the store."""

    key: str
    old_value: str | None
    new_value: str | None


@dataclass(frozen=True)
class StorageFailure:
    """A storage operation failed and was reported instead of raised."""

    operation: str
    key: str | None
    error: str


class EventChannel(Generic[E]):
    """Fan-out of one event type to its subscribers."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, event: E) -> None:
        """Deliver an event to every listener registered at call time."""
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Listener failed on channel {self.name}")


@dataclass
class EventBus:
    """One channel per event kind."""

    auth_changed: EventChannel[AuthChanged] = field(
        default_factory=lambda: EventChannel("auth-changed")
    )
    data_changed: EventChannel[DataChanged] = field(
        default_factory=lambda: EventChannel("data-changed")
    )
    storage_changed: EventChannel[StorageChanged] = field(
        default_factory=lambda: EventChannel("storage-changed")
    )
    storage_error: EventChannel[StorageFailure] = field(
        default_factory=lambda: EventChannel("storage-error")
    )
