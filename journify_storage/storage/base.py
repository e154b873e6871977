"""
Abstract key-value store interface.

Defines the contract of the persistent medium underneath the storage
service: string keys mapped to string values, a capacity limit, and
notifications about changes made by other contexts sharing the medium.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

AVAILABILITY_PROBE_KEY = "__journify_storage_test__"


@dataclass(frozen=True)
class StoreChange:
    """A key changed through another context (tab, process)."""

    key: str
    old_value: str | None
    new_value: str | None


ChangeListener = Callable[[StoreChange], Awaitable[None] | None]


class KeyValueStore(ABC):
    """Abstract string-to-string store.

    Implementations raise ``StoreQuotaExceededError`` when a write does
    not fit and ``StoreUnavailableError`` when the medium cannot be used.
    Change listeners only hear about writes made elsewhere, never about
    writes made through the same instance.
    """

    quota_bytes: int | None = None

    def __init__(self) -> None:
        self._change_listeners: list[ChangeListener] = []

    @property
    def persistent(self) -> bool:
        """Whether values survive the end of the process."""
        return False

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Read a value.

        Args:
            key: Storage key

        Returns:
            Stored string or None when absent
        """
        ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Write a value.

        Args:
            key: Storage key
            value: String to store

        Raises:
            StoreQuotaExceededError: If the write exceeds capacity
            StorageError: If the write fails
        """
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete a key; absent keys are ignored."""
        ...

    @abstractmethod
    async def keys(self) -> list[str]:
        """List all stored keys."""
        ...

    async def is_available(self) -> bool:
        """Probe the medium with a write/remove round trip."""
        try:
            await self.set_item(AVAILABILITY_PROBE_KEY, AVAILABILITY_PROBE_KEY)
            await self.remove_item(AVAILABILITY_PROBE_KEY)
            return True
        except Exception as e:
            logger.warning(f"Store availability probe failed: {e}")
            return False

    async def used_bytes(self) -> int:
        """Approximate bytes occupied by all keys and values."""
        total = 0
        for key in await self.keys():
            value = await self.get_item(key)
            total += item_size(key, value or "")
        return total

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._change_listeners:
            self._change_listeners.remove(listener)

    async def _notify_listeners(self, change: StoreChange) -> None:
        for listener in list(self._change_listeners):
            try:
                result = listener(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Store change listener failed for key {change.key}")

    async def close(self) -> None:
        """Release resources held by the store."""
        self._change_listeners.clear()


def item_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))
