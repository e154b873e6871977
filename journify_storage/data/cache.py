"""
Read cache for the data layer.

Holds the last loaded mood list, journal list and statistics, each with
its own load time, so repeated reads within the TTL skip storage.
"""

from __future__ import annotations

from typing import Any

from ..utils import Clock

ENTRIES = "entries"
JOURNAL_ENTRIES = "journalEntries"
ANALYTICS = "analytics"

SLOTS = (ENTRIES, JOURNAL_ENTRIES, ANALYTICS)


class EntryCache:
    """
    Time-limited cache with one slot per collection.

    A slot is fresh while its age is strictly below the TTL; at exactly
    the TTL it is stale.

    Args:
        ttl_seconds: Freshness window
        clock: Source of "now"
    """

    def __init__(self, ttl_seconds: float = 5 * 60, clock: Clock | None = None):
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")

        self.ttl_seconds = ttl_seconds
        self.clock = clock or Clock()
        self._values: dict[str, Any] = {}
        self._loaded_at: dict[str, float] = {}
        self._hits = 0
        self._misses = 0

    def _check_slot(self, slot: str) -> None:
        if slot not in SLOTS:
            raise KeyError(f"Unknown cache slot: {slot}")

    def state(self, slot: str) -> str:
        """Return ``"fresh"``, ``"stale"`` or ``"empty"``."""
        self._check_slot(slot)
        if slot not in self._values:
            return "empty"
        age = self.clock.time() - self._loaded_at[slot]
        return "fresh" if age < self.ttl_seconds else "stale"

    def get(self, slot: str) -> Any | None:
        """
        Get a slot's value if fresh.

        Returns:
            Cached value or None when empty or stale
        """
        if self.state(slot) == "fresh":
            self._hits += 1
            return self._values[slot]
        self._misses += 1
        return None

    def put(self, slot: str, value: Any) -> None:
        self._check_slot(slot)
        self._values[slot] = value
        self._loaded_at[slot] = self.clock.time()

    def invalidate(self, *slots: str) -> None:
        """Empty the given slots."""
        for slot in slots:
            self._check_slot(slot)
            self._values.pop(slot, None)
            self._loaded_at.pop(slot, None)

    def clear(self) -> None:
        """Empty every slot."""
        self._values.clear()
        self._loaded_at.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self.ttl_seconds,
            "slots": {slot: self.state(slot) for slot in SLOTS},
        }
