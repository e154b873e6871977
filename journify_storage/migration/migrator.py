"""
Storage migrator.

Runs registered per-version hooks when the version stamped in storage is
older than the running application version, and converts the pre-1.0
entry list into the current mood-entry collection.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ..storage.keys import StorageKeys
from ..utils import Clock, generate_entry_id
from .types import MigrationBatch, MigrationHook, MigrationResult, MigrationStatus

if TYPE_CHECKING:
    from ..storage.service import StorageService

logger = logging.getLogger(__name__)

ENTRY_FORMAT_VERSION = "1.0.0"


def parse_version(version: str | None) -> tuple[int, ...]:
    """Parse a dotted version into a comparable tuple.

    Non-numeric parts count as 0; None parses as the lowest version.
    """
    if not version:
        return (0,)
    parts = []
    for part in str(version).split("."):
        match = re.match(r"\d+", part)
        parts.append(int(match.group()) if match else 0)
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


class StorageMigrator:
    """Registry of migration hooks keyed by the version they migrate to.

    Example:
        >>> migrator = StorageMigrator()
        >>> @migrator.register("1.1.0")
        ... async def rename_theme_key(storage):
        ...     ...
    """

    def __init__(self) -> None:
        self._hooks: dict[str, list[MigrationHook]] = {}

    def register(self, version: str):
        """Decorator registering a hook that migrates storage to ``version``."""

        def decorator(hook: MigrationHook) -> MigrationHook:
            self.add_hook(version, hook)
            return hook

        return decorator

    def add_hook(self, version: str, hook: MigrationHook) -> None:
        self._hooks.setdefault(version, []).append(hook)

    def registered_versions(self) -> list[str]:
        return sorted(self._hooks, key=parse_version)

    def plan(self, from_version: str | None, to_version: str) -> list[str]:
        """Versions whose hooks run, i.e. ``from < version <= to``, ascending."""
        low, high = parse_version(from_version), parse_version(to_version)
        return [v for v in self.registered_versions() if low < parse_version(v) <= high]

    async def migrate(
        self,
        storage: StorageService,
        from_version: str | None,
        to_version: str,
    ) -> MigrationBatch:
        """Run every planned hook in version order.

        Stops at the first failing hook; later hooks are reported as skipped.

        Args:
            storage: Storage service handed to each hook
            from_version: Version found in storage (None when unknown)
            to_version: Running application version

        Returns:
            Batch result with one entry per hook
        """
        batch = MigrationBatch(
            from_version=from_version,
            to_version=to_version,
            started_at=datetime.now(UTC),
        )
        versions = self.plan(from_version, to_version)
        if not versions:
            logger.info(f"No migrations registered between {from_version} and {to_version}")

        failed = False
        for version in versions:
            for hook in self._hooks[version]:
                result = MigrationResult(target_version=version, status=MigrationStatus.PENDING)
                if failed:
                    result.status = MigrationStatus.SKIPPED
                    batch.add_result(result)
                    continue

                result.started_at = datetime.now(UTC)
                result.status = MigrationStatus.IN_PROGRESS
                try:
                    await hook(storage)
                    result.status = MigrationStatus.COMPLETED
                except Exception as e:
                    logger.error(f"Migration to {version} failed: {e}", exc_info=True)
                    result.status = MigrationStatus.FAILED
                    result.error_message = str(e)
                    result.error_details = {"type": type(e).__name__}
                    failed = True
                result.completed_at = datetime.now(UTC)
                batch.add_result(result)

        batch.completed_at = datetime.now(UTC)
        logger.info(
            f"Migration {from_version} -> {to_version}: "
            f"{batch.completed} completed, {batch.failed} failed, {batch.skipped} skipped"
        )
        return batch


async def migrate_legacy_entries(
    storage: StorageService,
    clock: Clock | None = None,
) -> MigrationResult:
    """Move the legacy ``journify_entries`` list into the mood-entry collection.

    Entries lacking an id or format version get one. Dates already present
    in the current collection keep the current entry. The legacy key is
    removed afterwards, so running this again is a no-op.
    """
    clock = clock or Clock()
    result = MigrationResult(target_version="legacy-entries", status=MigrationStatus.PENDING)
    result.started_at = datetime.now(UTC)

    legacy = await storage.get(StorageKeys.LEGACY_ENTRIES)
    if legacy is None:
        result.status = MigrationStatus.SKIPPED
        result.completed_at = datetime.now(UTC)
        return result

    if not isinstance(legacy, list):
        logger.warning("Legacy entry list is not a list; leaving it in place")
        result.status = MigrationStatus.FAILED
        result.error_message = "legacy entries are not a list"
        result.completed_at = datetime.now(UTC)
        return result

    current = await storage.get(StorageKeys.MOOD_ENTRIES)
    merged: list[dict[str, Any]] = list(current) if isinstance(current, list) else []
    known_dates = {e.get("date") for e in merged if isinstance(e, dict)}

    for entry in legacy:
        if not isinstance(entry, dict) or entry.get("date") in known_dates:
            continue
        migrated = dict(entry)
        migrated.setdefault("id", generate_entry_id(clock))
        migrated.setdefault("version", ENTRY_FORMAT_VERSION)
        merged.append(migrated)
        known_dates.add(migrated.get("date"))
        result.items_migrated += 1

    if not await storage.set(StorageKeys.MOOD_ENTRIES, merged):
        result.status = MigrationStatus.FAILED
        result.error_message = "could not write migrated entries"
        result.completed_at = datetime.now(UTC)
        return result

    await storage.remove(StorageKeys.LEGACY_ENTRIES)
    result.status = MigrationStatus.COMPLETED
    result.completed_at = datetime.now(UTC)
    logger.info(f"Migrated {result.items_migrated} legacy entries")
    return result
