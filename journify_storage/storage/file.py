"""
File-backed key-value store.

Each key lives in its own ``<key>.item`` file under one directory and is
written atomically. Other processes sharing the directory are detected
by diffing the directory against the last known snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from ..exceptions import StorageError, StoreQuotaExceededError, StoreUnavailableError
from .base import KeyValueStore, StoreChange, item_size
from .file_ops import (
    ensure_directory,
    file_size,
    list_files,
    read_text,
    remove_file,
    write_text_atomic,
)

logger = logging.getLogger(__name__)

ITEM_SUFFIX = ".item"
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]*$")


class FileStore(KeyValueStore):
    """Persistent store rooted at a directory.

    Args:
        base_path: Directory holding one file per key
        quota_bytes: Capacity limit over keys plus values, None for unlimited
    """

    def __init__(self, base_path: Path, quota_bytes: int | None = None) -> None:
        super().__init__()
        self.base_path = Path(base_path)
        self.quota_bytes = quota_bytes
        self._snapshot: dict[str, str] | None = None
        # Own writes made while a poll is scanning the directory
        self._writes_during_scan: dict[str, str | None] | None = None
        self._watch_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def persistent(self) -> bool:
        return True

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError("resolve_key", key, ValueError("unsupported key characters"))
        return self.base_path / f"{key}{ITEM_SUFFIX}"

    def _check_open(self) -> None:
        if self._closed:
            raise StoreUnavailableError("file store closed")

    async def get_item(self, key: str) -> str | None:
        self._check_open()
        return await read_text(self._path_for(key))

    async def set_item(self, key: str, value: str) -> None:
        self._check_open()
        path = self._path_for(key)

        if self.quota_bytes is not None:
            used = await self.used_bytes()
            existing = await file_size(path)
            if existing:
                used -= len(key.encode("utf-8")) + existing
            new_total = used + item_size(key, value)
            if new_total > self.quota_bytes:
                raise StoreQuotaExceededError(key, new_total, self.quota_bytes)

        await write_text_atomic(path, value)
        self._record_own_write(key, value)

    async def remove_item(self, key: str) -> None:
        self._check_open()
        await remove_file(self._path_for(key))
        self._record_own_write(key, None)

    def _record_own_write(self, key: str, value: str | None) -> None:
        if self._writes_during_scan is not None:
            self._writes_during_scan[key] = value
        if self._snapshot is None:
            return
        if value is None:
            self._snapshot.pop(key, None)
        else:
            self._snapshot[key] = value

    async def keys(self) -> list[str]:
        self._check_open()
        files = await list_files(self.base_path, ITEM_SUFFIX)
        return [f.name[: -len(ITEM_SUFFIX)] for f in files]

    async def used_bytes(self) -> int:
        self._check_open()
        total = 0
        for path in await list_files(self.base_path, ITEM_SUFFIX):
            key = path.name[: -len(ITEM_SUFFIX)]
            total += len(key.encode("utf-8")) + await file_size(path)
        return total

    async def is_available(self) -> bool:
        try:
            self._check_open()
            await ensure_directory(self.base_path)
        except StorageError as e:
            logger.warning(f"File store unavailable at {self.base_path}: {e}")
            return False
        return await super().is_available()

    async def _read_all(self) -> dict[str, str]:
        items: dict[str, str] = {}
        for key in await self.keys():
            value = await self.get_item(key)
            if value is not None:
                items[key] = value
        return items

    async def poll_external_changes(self) -> list[StoreChange]:
        """Detect writes made by other processes since the last poll.

        The first call only records a snapshot. Writes this store makes
        while the directory is being scanned are never reported.

        Returns:
            Changes that were delivered to the change listeners
        """
        self._writes_during_scan = {}
        try:
            current = await self._read_all()
            own_writes = self._writes_during_scan
        finally:
            self._writes_during_scan = None
        for key, value in own_writes.items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = value

        if self._snapshot is None:
            self._snapshot = current
            return []

        changes = []
        for key in sorted(set(self._snapshot) | set(current)):
            old_value = self._snapshot.get(key)
            new_value = current.get(key)
            if old_value != new_value:
                changes.append(StoreChange(key, old_value, new_value))

        self._snapshot = current
        for change in changes:
            await self._notify_listeners(change)
        return changes

    def start_watching(self, interval: float = 1.0) -> None:
        """Poll for external changes in a background task."""
        if self._watch_task is not None:
            return
        self._watch_task = asyncio.create_task(self._watch_loop(interval))

    async def _watch_loop(self, interval: float) -> None:
        while True:
            try:
                await self.poll_external_changes()
            except StorageError as e:
                logger.warning(f"External change scan failed: {e}")
            await asyncio.sleep(interval)

    async def close(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None
        self._closed = True
        await super().close()
