"""Tests for integrity checks and cleanup of stored entry collections."""

from __future__ import annotations

import json

import pytest

from journify_storage import JournifyApp
from journify_storage.data import EntryKind
from journify_storage.events import DataChanged
from journify_storage.storage import StorageKeys

MOOD_RECORDS = [
    {"date": "2025-01-01", "mood": "happy"},
    {"date": "2025-01-01", "mood": "sad"},
    {"date": "not-a-date", "mood": "calm"},
    "junk",
    {"date": "2025-01-02", "mood": "calm"},
]

JOURNAL_RECORDS = [
    {"date": "2025-01-01", "journalEntry": {"wentWell": "first"}},
    {"date": "2025-01-01", "journalEntry": {"wentWell": "second"}},
    {"date": "2025-01-02"},
]


@pytest.fixture
async def messy(app: JournifyApp) -> JournifyApp:
    """App whose collections hold malformed and duplicate records."""
    await app.storage.set(StorageKeys.MOOD_ENTRIES, MOOD_RECORDS)
    await app.storage.set(StorageKeys.JOURNAL_ENTRIES, JOURNAL_RECORDS)
    return app


class TestVerifyIntegrity:
    """Tests for verify_integrity."""

    @pytest.mark.asyncio
    async def test_clean_data(self, app: JournifyApp) -> None:
        await app.data.save(EntryKind.MOOD, {"date": "2025-01-01", "mood": "happy"})

        report = await app.data.verify_integrity()

        assert report.is_valid
        assert report.issues == []
        assert report.recommendations == []
        assert report.statistics["totalMoodEntries"] == 1
        assert report.statistics["dateRange"] == {
            "earliest": "2025-01-01",
            "latest": "2025-01-01",
        }

    @pytest.mark.asyncio
    async def test_reports_problems(self, messy: JournifyApp) -> None:
        """Test that malformed and duplicate records are counted per collection."""
        report = await messy.data.verify_integrity()

        assert not report.is_valid
        assert [(issue.type, issue.count) for issue in report.issues] == [
            ("invalid_mood_entries", 2),
            ("invalid_journal_entries", 1),
            ("duplicate_mood_dates", 1),
            ("duplicate_journal_dates", 1),
        ]
        assert report.recommendations == [
            "Run data cleanup to remove invalid entries",
            "Remove duplicate entries",
        ]
        assert report.statistics["totalMoodEntries"] == 3
        assert report.statistics["totalJournalEntries"] == 2
        assert report.statistics["dateRange"] == {
            "earliest": "2025-01-01",
            "latest": "2025-01-02",
        }

    @pytest.mark.asyncio
    async def test_verify_does_not_modify(self, messy: JournifyApp) -> None:
        await messy.data.verify_integrity()

        assert await messy.storage.get(StorageKeys.MOOD_ENTRIES) == MOOD_RECORDS

    @pytest.mark.asyncio
    async def test_report_dict(self, messy: JournifyApp) -> None:
        data = (await messy.data.verify_integrity()).to_dict()

        assert data["isValid"] is False
        assert data["issues"][0] == {
            "type": "invalid_mood_entries",
            "count": 2,
            "message": "Found invalid mood entries",
        }
        assert set(data["statistics"]) == {
            "totalMoodEntries",
            "totalJournalEntries",
            "dateRange",
            "storageSize",
        }


class TestCleanup:
    """Tests for cleanup."""

    @pytest.mark.asyncio
    async def test_cleanup(self, messy: JournifyApp) -> None:
        """Test that cleanup keeps the first valid record per date."""
        received: list[DataChanged] = []
        messy.events.data_changed.subscribe(received.append)

        result = await messy.data.cleanup()

        assert result.mood_entries_removed == 2
        assert result.journal_entries_removed == 1
        assert result.duplicates_removed == 2
        assert result.total_removed == 5

        mood = await messy.data.get_all(EntryKind.MOOD)
        assert [(e.date, e.mood) for e in mood] == [("2025-01-01", "happy"), ("2025-01-02", "calm")]
        journal = await messy.storage.get(StorageKeys.JOURNAL_ENTRIES)
        assert journal == [JOURNAL_RECORDS[0]]

        assert (await messy.data.verify_integrity()).is_valid
        assert [(e.type, e.action, e.data) for e in received] == [
            (
                "all",
                "cleanup",
                {"moodEntriesRemoved": 2, "journalEntriesRemoved": 1, "duplicatesRemoved": 2},
            )
        ]

    @pytest.mark.asyncio
    async def test_cleanup_refreshes_cache(self, messy: JournifyApp) -> None:
        """Test that entries read before cleanup are not served afterwards."""
        await messy.data.get_all(EntryKind.MOOD)

        await messy.data.cleanup()

        assert messy.data.cache.state("entries") == "empty"


class TestStorageSize:
    @pytest.mark.asyncio
    async def test_compact_json_length(self, messy: JournifyApp) -> None:
        """Test that the size is the compact JSON length of both collections."""
        expected = len(json.dumps(MOOD_RECORDS, separators=(",", ":"))) + len(
            json.dumps(JOURNAL_RECORDS, separators=(",", ":"))
        )

        assert await messy.data.calculate_storage_size() == expected

    @pytest.mark.asyncio
    async def test_empty(self, app: JournifyApp) -> None:
        assert await app.data.calculate_storage_size() == len("[]") * 2
