"""
In-memory key-value store.

Used for tests, for the memory backend, and as the fallback when the
persistent store is unavailable. Several stores attached to the same
``SharedMemoryArea`` behave like browser tabs sharing one origin: a
write through one store notifies the listeners of the others.
"""

from __future__ import annotations

import logging

from ..exceptions import StoreQuotaExceededError, StoreUnavailableError
from .base import KeyValueStore, StoreChange, item_size

logger = logging.getLogger(__name__)


class SharedMemoryArea:
    """Backing mapping shared by one or more ``MemoryStore`` instances."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}
        self._stores: list[MemoryStore] = []

    def attach(self, store: MemoryStore) -> None:
        if store not in self._stores:
            self._stores.append(store)

    def detach(self, store: MemoryStore) -> None:
        if store in self._stores:
            self._stores.remove(store)

    async def broadcast(self, origin: MemoryStore, change: StoreChange) -> None:
        """Notify every attached store except the one that made the change."""
        for store in list(self._stores):
            if store is not origin:
                await store._notify_listeners(change)


class MemoryStore(KeyValueStore):
    """Volatile store backed by a dict.

    Args:
        area: Shared area to join (default: a private one)
        quota_bytes: Capacity limit over keys plus values, None for unlimited
        available: False simulates a disabled medium
    """

    def __init__(
        self,
        area: SharedMemoryArea | None = None,
        quota_bytes: int | None = None,
        available: bool = True,
    ) -> None:
        super().__init__()
        self.area = area or SharedMemoryArea()
        self.quota_bytes = quota_bytes
        self.available = available
        self.area.attach(self)

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("memory store disabled")

    async def get_item(self, key: str) -> str | None:
        self._check_available()
        return self.area.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._check_available()
        old_value = self.area.items.get(key)

        if self.quota_bytes is not None:
            used = self._used()
            if old_value is not None:
                used -= item_size(key, old_value)
            new_total = used + item_size(key, value)
            if new_total > self.quota_bytes:
                raise StoreQuotaExceededError(key, new_total, self.quota_bytes)

        self.area.items[key] = value
        if old_value != value:
            await self.area.broadcast(self, StoreChange(key, old_value, value))

    async def remove_item(self, key: str) -> None:
        self._check_available()
        if key not in self.area.items:
            return
        old_value = self.area.items.pop(key)
        await self.area.broadcast(self, StoreChange(key, old_value, None))

    async def keys(self) -> list[str]:
        self._check_available()
        return list(self.area.items)

    async def used_bytes(self) -> int:
        self._check_available()
        return self._used()

    def _used(self) -> int:
        return sum(item_size(k, v) for k, v in self.area.items.items())

    async def close(self) -> None:
        self.area.detach(self)
        await super().close()
