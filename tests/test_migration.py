"""Tests for migration module."""

from __future__ import annotations

import pytest

from journify_storage import JournifyApp, JournifyConfig, create_app
from journify_storage.data import EntryKind
from journify_storage.migration import (
    MigrationBatch,
    MigrationResult,
    MigrationStatus,
    StorageMigrator,
    migrate_legacy_entries,
    parse_version,
)
from journify_storage.storage import MemoryStore, SharedMemoryArea, StorageKeys, StorageService


class TestParseVersion:
    """Tests for parse_version."""

    def test_trailing_zeros_ignored(self) -> None:
        assert parse_version("1.0.0") == parse_version("1") == (1,)
        assert parse_version("1.2.0") == (1, 2)

    def test_ordering(self) -> None:
        assert parse_version("1.10.0") > parse_version("1.9.3")
        assert parse_version("2.0") > parse_version("1.99")

    def test_unusual_values(self) -> None:
        """Test that missing and suffixed versions still parse."""
        assert parse_version(None) == (0,)
        assert parse_version("") == (0,)
        assert parse_version("2.1.0-beta") == (2, 1)
        assert parse_version("x.3") == (0, 3)


class TestStorageMigrator:
    """Tests for StorageMigrator."""

    def test_plan_selects_versions_in_range(self) -> None:
        """Test that hooks run for from < version <= to, in version order."""
        migrator = StorageMigrator()
        for version in ("2.0.0", "1.1.0", "1.10.0", "1.0.0"):
            migrator.add_hook(version, _noop)

        assert migrator.registered_versions() == ["1.0.0", "1.1.0", "1.10.0", "2.0.0"]
        assert migrator.plan("1.0.0", "1.10.0") == ["1.1.0", "1.10.0"]
        assert migrator.plan("1.10.0", "1.10.0") == []
        assert migrator.plan(None, "1.0") == ["1.0.0"]

    @pytest.mark.asyncio
    async def test_hooks_run_in_order(self, storage: StorageService) -> None:
        migrator = StorageMigrator()
        calls: list[str] = []

        @migrator.register("1.2.0")
        async def second(service: StorageService) -> None:
            calls.append("1.2.0")

        @migrator.register("1.1.0")
        async def first(service: StorageService) -> None:
            assert service is storage
            calls.append("1.1.0")

        batch = await migrator.migrate(storage, "1.0.0", "1.2.0")

        assert calls == ["1.1.0", "1.2.0"]
        assert batch.succeeded
        assert batch.completed == 2
        assert [r.status for r in batch.results] == [MigrationStatus.COMPLETED] * 2

    @pytest.mark.asyncio
    async def test_failure_skips_remaining(self, storage: StorageService) -> None:
        """Test that the first failing hook stops the run."""
        migrator = StorageMigrator()
        calls: list[str] = []

        @migrator.register("1.1.0")
        async def broken(service: StorageService) -> None:
            raise RuntimeError("bad data")

        @migrator.register("1.2.0")
        async def later(service: StorageService) -> None:
            calls.append("1.2.0")

        batch = await migrator.migrate(storage, "1.0.0", "1.2.0")

        assert calls == []
        assert not batch.succeeded
        assert (batch.completed, batch.failed, batch.skipped) == (0, 1, 1)
        failed = batch.results[0]
        assert failed.error_message == "bad data"
        assert failed.error_details == {"type": "RuntimeError"}
        assert failed.duration_seconds is not None
        assert batch.results[1].status == MigrationStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_nothing_planned(self, storage: StorageService) -> None:
        batch = await StorageMigrator().migrate(storage, "1.0.0", "1.0.0")

        assert batch.succeeded
        assert batch.results == []


class TestMigrationTypes:
    def test_batch_to_dict(self) -> None:
        batch = MigrationBatch(from_version="1.0.0", to_version="1.1.0")
        batch.add_result(MigrationResult("1.1.0", MigrationStatus.COMPLETED, items_migrated=3))

        data = batch.to_dict()

        assert data["completed"] == 1
        assert data["results"][0]["status"] == "completed"
        assert data["results"][0]["items_migrated"] == 3
        assert data["results"][0]["duration_seconds"] is None


class TestLegacyEntries:
    """Tests for migrate_legacy_entries."""

    @pytest.mark.asyncio
    async def test_no_legacy_key(self, storage: StorageService, clock) -> None:
        result = await migrate_legacy_entries(storage, clock)

        assert result.status == MigrationStatus.SKIPPED
        assert await storage.get(StorageKeys.MOOD_ENTRIES) is None

    @pytest.mark.asyncio
    async def test_merge_into_current(self, storage: StorageService, clock) -> None:
        """Test that legacy entries are added for dates not already present."""
        await storage.set(
            StorageKeys.MOOD_ENTRIES,
            [{"id": "entry_current", "date": "2025-01-01", "mood": "happy"}],
        )
        await storage.set(
            StorageKeys.LEGACY_ENTRIES,
            [
                {"date": "2025-01-01", "mood": "sad"},
                {"date": "2024-12-31", "mood": "calm", "id": "entry_old"},
                "junk",
            ],
        )

        result = await migrate_legacy_entries(storage, clock)

        assert result.status == MigrationStatus.COMPLETED
        assert result.items_migrated == 1
        entries = await storage.get(StorageKeys.MOOD_ENTRIES)
        assert entries == [
            {"id": "entry_current", "date": "2025-01-01", "mood": "happy"},
            {"date": "2024-12-31", "mood": "calm", "id": "entry_old", "version": "1.0.0"},
        ]
        assert await storage.get(StorageKeys.LEGACY_ENTRIES) is None

    @pytest.mark.asyncio
    async def test_ids_assigned(self, storage: StorageService, clock) -> None:
        await storage.set(StorageKeys.LEGACY_ENTRIES, [{"date": "2025-01-02", "mood": "calm"}])

        await migrate_legacy_entries(storage, clock)

        (entry,) = await storage.get(StorageKeys.MOOD_ENTRIES)
        assert entry["id"].startswith("entry_")
        assert entry["version"] == "1.0.0"

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, storage: StorageService, clock) -> None:
        await storage.set(StorageKeys.LEGACY_ENTRIES, [{"date": "2025-01-02", "mood": "calm"}])

        await migrate_legacy_entries(storage, clock)
        again = await migrate_legacy_entries(storage, clock)

        assert again.status == MigrationStatus.SKIPPED
        assert len(await storage.get(StorageKeys.MOOD_ENTRIES)) == 1

    @pytest.mark.asyncio
    async def test_not_a_list(self, storage: StorageService, clock) -> None:
        await storage.set(StorageKeys.LEGACY_ENTRIES, {"date": "2025-01-02"})

        result = await migrate_legacy_entries(storage, clock)

        assert result.status == MigrationStatus.FAILED
        assert await storage.get(StorageKeys.LEGACY_ENTRIES) == {"date": "2025-01-02"}

    @pytest.mark.asyncio
    async def test_runs_at_startup(self, config: JournifyConfig, clock) -> None:
        """Test that the data service converts legacy entries when the app starts."""
        area = SharedMemoryArea()
        seed = StorageService(MemoryStore(area), config=config, clock=clock)
        await seed.initialize()
        await seed.set(StorageKeys.LEGACY_ENTRIES, [{"date": "2025-01-02", "mood": "calm"}])

        app: JournifyApp = await create_app(config, store=MemoryStore(area), clock=clock)
        try:
            entries = await app.data.get_all(EntryKind.MOOD)
        finally:
            await app.close()
            await seed.close()

        assert [(e.date, e.mood) for e in entries] == [("2025-01-02", "calm")]


async def _noop(storage: StorageService) -> None:
    return None
