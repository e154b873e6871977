"""
Data access service.

CRUD, queries, statistics, search, import/export and integrity checks for
mood and journal entries, on top of the storage service. Entries are
unique per calendar date; saving an existing date updates it in place.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..auth.types import User
from ..config import JournifyConfig
from ..events import AuthChanged, DataChanged, EventBus, StorageChanged
from ..exceptions import JournifyError, StorageError, ValidationError
from ..migration import MigrationStatus, migrate_legacy_entries
from ..storage.keys import StorageKeys
from ..storage.service import StorageService
from ..utils import Clock, generate_entry_id, is_valid_date_string, isoformat_z
from ..validation import JOURNAL_MAX_LENGTH, MOOD_NOTE_MAX_LENGTH
from . import cache as slots
from .cache import EntryCache
from .integrity import (
    CleanupResult,
    IntegrityReport,
    IntegrityWarning,
    as_record_list,
    is_valid_journal_record,
    is_valid_mood_record,
    split_duplicates,
)
from .statistics import compute_statistics, date_range
from .types import (
    ENTRY_VERSION,
    JOURNAL_FIELD_NAMES,
    BulkResult,
    CombinedEntry,
    Entry,
    EntryKind,
    ImportCounts,
    JournalEntry,
    JournalFields,
    MoodEntry,
    SearchResult,
)

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"
JOURNAL_FIELD_MAX_LENGTH = JOURNAL_MAX_LENGTH

CurrentUserProvider = Callable[[], User | None]

_CACHE_SLOT = {EntryKind.MOOD: slots.ENTRIES, EntryKind.JOURNAL: slots.JOURNAL_ENTRIES}


class DataService:
    """Entry collections of the current user.

    Reads go through a TTL cache; every write clears it. Reads never
    raise for storage problems (they return empty results), while
    ``save``, ``delete`` and ``cleanup`` raise ``ValidationError`` or
    ``StorageError`` with a message suitable for display.

    Args:
        storage: Initialized storage service
        events: Bus for data-changed events and cache invalidation
        config: Settings (cache TTL)
        clock: Source of "now"
        user_provider: Returns the signed-in user for export bundles
    """

    def __init__(
        self,
        storage: StorageService,
        events: EventBus | None = None,
        config: JournifyConfig | None = None,
        clock: Clock | None = None,
        user_provider: CurrentUserProvider | None = None,
    ) -> None:
        self.storage = storage
        self.events = events or storage.events
        self.config = config or storage.config
        self.clock = clock or storage.clock
        self.user_provider = user_provider
        self.cache = EntryCache(self.config.cache_ttl_seconds, self.clock)
        self._unsubscribers: list[Callable[[], None]] = []
        self._initialized = False

    async def initialize(self) -> None:
        """Convert legacy entries and start listening for invalidations."""
        if self._initialized:
            return

        result = await migrate_legacy_entries(self.storage, self.clock)
        if result.status == MigrationStatus.COMPLETED:
            logger.info(f"Legacy entries migrated: {result.items_migrated}")
        elif result.status == MigrationStatus.FAILED:
            logger.warning(f"Legacy entry migration failed: {result.error_message}")

        self._unsubscribers = [
            self.events.storage_changed.subscribe(self._on_storage_changed),
            self.events.auth_changed.subscribe(self._on_auth_changed),
        ]
        self._initialized = True

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.cache.clear()
        self._initialized = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(self, kind: EntryKind) -> list[Entry]:
        """All valid entries of a collection, in stored order.

        Records without a real ``YYYY-MM-DD`` date (and journal records
        without a ``journalEntry`` mapping) are left out.
        """
        slot = _CACHE_SLOT[kind]
        cached = self.cache.get(slot)
        if cached is not None:
            return list(cached)

        records = as_record_list(await self.storage.get(kind.storage_key))
        entries = self._parse_records(kind, records)
        if len(entries) != len(records):
            logger.warning(f"Ignored {len(records) - len(entries)} invalid {kind.value} records")

        self.cache.put(slot, entries)
        return list(entries)

    def _parse_records(self, kind: EntryKind, records: list[Any]) -> list[Entry]:
        if kind is EntryKind.MOOD:
            return [MoodEntry.from_dict(r) for r in records if is_valid_mood_record(r)]
        return [JournalEntry.from_dict(r) for r in records if is_valid_journal_record(r)]

    async def get_by_date(self, kind: EntryKind, date: str) -> Entry | None:
        if not is_valid_date_string(date):
            return None
        for entry in await self.get_all(kind):
            if entry.date == date:
                return entry
        return None

    async def get_range(self, kind: EntryKind, start: str, end: str) -> list[Entry]:
        """Entries with ``start <= date <= end``, newest first."""
        if not (is_valid_date_string(start) and is_valid_date_string(end)):
            return []
        entries = [e for e in await self.get_all(kind) if start <= e.date <= end]
        return sorted(entries, key=lambda e: e.date, reverse=True)

    async def get_recent(self, kind: EntryKind, limit: int = 10) -> list[Entry]:
        entries = sorted(await self.get_all(kind), key=lambda e: e.date, reverse=True)
        return entries[: max(limit, 0)]

    async def get_combined(self, date: str) -> CombinedEntry:
        mood = await self.get_by_date(EntryKind.MOOD, date)
        journal = await self.get_by_date(EntryKind.JOURNAL, date)
        return CombinedEntry(date=date, mood=mood, journal=journal)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, kind: EntryKind, data: dict[str, Any] | Entry) -> Entry:
        """Validate and upsert one entry by date.

        Raises:
            ValidationError: If the entry data is malformed
            StorageError: If the collection could not be written
        """
        return await self._upsert(kind, data, keep_identity=False)

    async def _upsert(
        self,
        kind: EntryKind,
        data: dict[str, Any] | Entry,
        keep_identity: bool,
    ) -> Entry:
        if isinstance(data, (MoodEntry, JournalEntry)):
            data = data.to_dict()
        validated = self._validate(kind, data)
        now = isoformat_z(self.clock.now())

        entries = await self.get_all(kind)
        index = next((i for i, e in enumerate(entries) if e.date == validated.date), None)

        if index is not None:
            saved = replace(
                entries[index],
                **self._content_fields(validated),
                updated_at=now,
            )
            entries[index] = saved
            logger.debug(f"Updated {kind.value} entry for {saved.date}")
        else:
            identity = data if keep_identity else {}
            saved = replace(
                validated,
                id=identity.get("id") or generate_entry_id(self.clock),
                created_at=identity.get("createdAt") or now,
                updated_at=identity.get("updatedAt") or now,
                version=identity.get("version") or ENTRY_VERSION,
            )
            entries.append(saved)
            logger.debug(f"Created {kind.value} entry for {saved.date}")

        await self._persist(kind, entries, "save")
        await self._emit(kind.event_type, "save", saved.to_dict())
        return saved

    @staticmethod
    def _content_fields(entry: Entry) -> dict[str, Any]:
        if isinstance(entry, MoodEntry):
            return {"mood": entry.mood, "mood_note": entry.mood_note, "timestamp": entry.timestamp}
        return {"journal_entry": entry.journal_entry, "timestamp": entry.timestamp}

    def _validate(self, kind: EntryKind, data: Any) -> Entry:
        if not isinstance(data, dict):
            raise ValidationError("entry", "Invalid entry data")

        date = data.get("date")
        if not is_valid_date_string(date):
            raise ValidationError("date", "Valid date is required")

        timestamp = data.get("timestamp") or isoformat_z(self.clock.now())
        if kind is EntryKind.MOOD:
            return self._validate_mood(data, date, timestamp)
        return self._validate_journal(data, date, timestamp)

    @staticmethod
    def _validate_mood(data: dict[str, Any], date: str, timestamp: str) -> MoodEntry:
        mood = data.get("mood")
        if not isinstance(mood, str) or not mood.strip():
            raise ValidationError("mood", "Valid mood is required")

        note = data.get("moodNote")
        if not isinstance(note, str):
            note = ""
        if len(note) > MOOD_NOTE_MAX_LENGTH:
            raise ValidationError(
                "moodNote", f"Mood note cannot exceed {MOOD_NOTE_MAX_LENGTH} characters"
            )

        return MoodEntry(date=date, mood=mood.lower(), mood_note=note.strip(), timestamp=timestamp)

    @staticmethod
    def _validate_journal(data: dict[str, Any], date: str, timestamp: str) -> JournalEntry:
        fields = data.get("journalEntry")
        if not isinstance(fields, dict):
            raise ValidationError("journalEntry", "Valid journal entry is required")

        cleaned = {}
        for name in JOURNAL_FIELD_NAMES:
            value = fields.get(name)
            if not isinstance(value, str):
                cleaned[name] = ""
                continue
            if len(value) > JOURNAL_FIELD_MAX_LENGTH:
                raise ValidationError(
                    name, f"{name} cannot exceed {JOURNAL_FIELD_MAX_LENGTH} characters"
                )
            cleaned[name] = value.strip()

        return JournalEntry(
            date=date,
            journal_entry=JournalFields.from_dict(cleaned),
            timestamp=timestamp,
        )

    async def delete(self, kind: EntryKind, date: str) -> bool:
        """Remove the entry for a date.

        Returns:
            False if there was no entry for the date

        Raises:
            ValidationError: If ``date`` is not a real ``YYYY-MM-DD`` date
            StorageError: If the collection could not be written
        """
        if not is_valid_date_string(date):
            raise ValidationError("date", "Invalid date format")

        entries = await self.get_all(kind)
        removed = [e for e in entries if e.date == date]
        if not removed:
            return False

        await self._persist(kind, [e for e in entries if e.date != date], "delete")
        logger.debug(f"Deleted {kind.value} entry for {date}")
        await self._emit(kind.event_type, "delete", removed[0].to_dict())
        return True

    async def save_combined(
        self,
        date: str,
        mood: dict[str, Any] | None = None,
        journal: dict[str, Any] | None = None,
    ) -> CombinedEntry:
        """Save the mood and/or journal part of one day."""
        result = CombinedEntry(date=date)
        if mood:
            result.mood = await self.save(EntryKind.MOOD, {**mood, "date": date})
        if journal:
            result.journal = await self.save(EntryKind.JOURNAL, {**journal, "date": date})
        return result

    async def bulk_save(self, kind: EntryKind, entries: list[dict[str, Any]]) -> BulkResult:
        """Save each entry independently; failures are collected, not raised."""
        result = BulkResult()
        for data in entries:
            try:
                await self.save(kind, data)
                result.success += 1
            except JournifyError as e:
                date = data.get("date") if isinstance(data, dict) else None
                result.add_failure(date, e.message)

        logger.info(f"Bulk save completed: {result.success} success, {result.failed} failed")
        return result

    async def bulk_delete(self, kind: EntryKind, dates: list[str]) -> BulkResult:
        result = BulkResult()
        for date in dates:
            try:
                if await self.delete(kind, date):
                    result.success += 1
                else:
                    result.add_failure(date, "Entry not found")
            except JournifyError as e:
                result.add_failure(date, e.message)

        logger.info(f"Bulk delete completed: {result.success} success, {result.failed} failed")
        return result

    async def _persist(self, kind: EntryKind, entries: list[Entry], operation: str) -> None:
        if not await self.storage.set(kind.storage_key, [e.to_dict() for e in entries]):
            raise StorageError(operation, kind.storage_key)
        self.cache.clear()

    async def _emit(self, type_: str, action: str, data: Any) -> None:
        await self.events.data_changed.publish(
            DataChanged(type=type_, action=action, data=data, timestamp=self.clock.millis())
        )

    # ------------------------------------------------------------------
    # Statistics and search
    # ------------------------------------------------------------------

    async def compute_statistics(self) -> dict[str, Any]:
        """Mood, journal, streak and overall statistics (cached)."""
        cached = self.cache.get(slots.ANALYTICS)
        if cached is not None:
            return cached

        mood_entries = await self.get_all(EntryKind.MOOD)
        journal_entries = await self.get_all(EntryKind.JOURNAL)
        stats = compute_statistics(mood_entries, journal_entries, self.clock.today())
        self.cache.put(slots.ANALYTICS, stats)
        return stats

    async def search(
        self,
        query: str,
        search_mood: bool = True,
        search_journal: bool = True,
        case_sensitive: bool = False,
        date_range: tuple[str, str] | None = None,
    ) -> list[SearchResult]:
        """Substring search over mood labels, mood notes and journal text.

        Args:
            query: Text to look for; blank queries match nothing
            search_mood: Include mood entries
            search_journal: Include journal entries
            case_sensitive: Match case exactly
            date_range: Optional inclusive ``(start, end)`` dates

        Returns:
            Matches tagged with their kind, newest first
        """
        if not query or not query.strip():
            return []

        def fold(text: str) -> str:
            return text if case_sensitive else text.lower()

        def in_range(entry: Entry) -> bool:
            return date_range is None or date_range[0] <= entry.date <= date_range[1]

        term = fold(query)
        results: list[SearchResult] = []

        if search_mood:
            for entry in await self.get_all(EntryKind.MOOD):
                if not isinstance(entry, MoodEntry) or not in_range(entry):
                    continue
                if term in fold(entry.mood_note) or term in fold(entry.mood):
                    results.append(SearchResult(EntryKind.MOOD, entry))

        if search_journal:
            for entry in await self.get_all(EntryKind.JOURNAL):
                if not isinstance(entry, JournalEntry) or not in_range(entry):
                    continue
                if term in fold(entry.journal_entry.text):
                    results.append(SearchResult(EntryKind.JOURNAL, entry))

        results.sort(key=lambda r: r.date, reverse=True)
        logger.debug(f"Search for {query!r} returned {len(results)} results")
        return results

    # ------------------------------------------------------------------
    # Export and import
    # ------------------------------------------------------------------

    async def export_all(self) -> dict[str, Any]:
        """Both collections, statistics and the current user summary."""
        mood_entries = await self.get_all(EntryKind.MOOD)
        journal_entries = await self.get_all(EntryKind.JOURNAL)
        statistics = await self.compute_statistics()
        user = self.user_provider() if self.user_provider else None

        return {
            "version": EXPORT_FORMAT_VERSION,
            "exportDate": isoformat_z(self.clock.now()),
            "user": {
                "id": user.id if user else None,
                "name": user.name if user else None,
                "email": user.email if user else None,
            },
            "data": {
                "moodEntries": [e.to_dict() for e in mood_entries],
                "journalEntries": [e.to_dict() for e in journal_entries],
                "statistics": statistics,
            },
            "metadata": {
                "totalMoodEntries": len(mood_entries),
                "totalJournalEntries": len(journal_entries),
                "dateRange": date_range(e.date for e in [*mood_entries, *journal_entries]),
            },
        }

    async def import_bundle(
        self,
        bundle: Any,
        merge: bool = False,
        overwrite: bool = False,
    ) -> dict[str, ImportCounts]:
        """Import entries from an export bundle, one entry at a time.

        Args:
            bundle: Output of ``export_all``
            merge: Skip dates that already have an entry (unless ``overwrite``)
            overwrite: With ``merge``, replace existing entries

        Returns:
            Counts keyed ``moodEntries`` and ``journalEntries``

        Raises:
            ValidationError: If the bundle has no ``data`` mapping
        """
        if not isinstance(bundle, dict) or not isinstance(bundle.get("data"), dict):
            raise ValidationError("bundle", "Invalid import data format")

        results: dict[str, ImportCounts] = {}
        for kind in EntryKind:
            counts = ImportCounts()
            records = bundle["data"].get(kind.export_name)
            for record in records if isinstance(records, list) else []:
                try:
                    if merge and isinstance(record, dict):
                        existing = await self.get_by_date(kind, record.get("date"))
                        if existing is not None and not overwrite:
                            counts.skipped += 1
                            continue
                    await self._upsert(kind, record, keep_identity=True)
                    counts.imported += 1
                except JournifyError as e:
                    counts.errors += 1
                    logger.warning(f"Failed to import {kind.value} entry: {e.message}")
            results[kind.export_name] = counts

        summary = {name: counts.to_dict() for name, counts in results.items()}
        logger.info(f"Import finished: {summary}")
        await self._emit("all", "import", summary)
        return results

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    async def _raw_records(self, kind: EntryKind) -> list[Any]:
        return as_record_list(await self.storage.get(kind.storage_key))

    async def verify_integrity(self) -> IntegrityReport:
        """Report malformed and duplicate-date records without changing them."""
        report = IntegrityReport()
        mood_records = await self._raw_records(EntryKind.MOOD)
        journal_records = await self._raw_records(EntryKind.JOURNAL)

        valid_mood = [r for r in mood_records if is_valid_mood_record(r)]
        valid_journal = [r for r in journal_records if is_valid_journal_record(r)]

        if len(valid_mood) != len(mood_records):
            report.add_issue(
                IntegrityWarning(
                    "invalid_mood_entries",
                    len(mood_records) - len(valid_mood),
                    "Found invalid mood entries",
                ),
                "Run data cleanup to remove invalid entries",
            )
        if len(valid_journal) != len(journal_records):
            report.add_issue(
                IntegrityWarning(
                    "invalid_journal_entries",
                    len(journal_records) - len(valid_journal),
                    "Found invalid journal entries",
                ),
                "Run data cleanup to remove invalid entries",
            )

        _, mood_duplicates = split_duplicates(valid_mood)
        if mood_duplicates:
            report.add_issue(
                IntegrityWarning(
                    "duplicate_mood_dates",
                    mood_duplicates,
                    "Found duplicate mood entries for same date",
                ),
                "Remove duplicate entries",
            )
        _, journal_duplicates = split_duplicates(valid_journal)
        if journal_duplicates:
            report.add_issue(
                IntegrityWarning(
                    "duplicate_journal_dates",
                    journal_duplicates,
                    "Found duplicate journal entries for same date",
                ),
                "Remove duplicate entries",
            )

        report.statistics = {
            "totalMoodEntries": len(valid_mood),
            "totalJournalEntries": len(valid_journal),
            "dateRange": date_range(r["date"] for r in valid_mood),
            "storageSize": await self.calculate_storage_size(),
        }
        logger.info(f"Integrity check: valid={report.is_valid}, issues={len(report.issues)}")
        return report

    async def cleanup(self) -> CleanupResult:
        """Strip malformed records and later duplicates of a date.

        Raises:
            StorageError: If a cleaned collection could not be written
        """
        result = CleanupResult()
        mood_records = await self._raw_records(EntryKind.MOOD)
        journal_records = await self._raw_records(EntryKind.JOURNAL)

        valid_mood = [r for r in mood_records if is_valid_mood_record(r)]
        valid_journal = [r for r in journal_records if is_valid_journal_record(r)]
        result.mood_entries_removed = len(mood_records) - len(valid_mood)
        result.journal_entries_removed = len(journal_records) - len(valid_journal)

        unique_mood, mood_duplicates = split_duplicates(valid_mood)
        unique_journal, journal_duplicates = split_duplicates(valid_journal)
        result.duplicates_removed = mood_duplicates + journal_duplicates

        for key, records in (
            (StorageKeys.MOOD_ENTRIES, unique_mood),
            (StorageKeys.JOURNAL_ENTRIES, unique_journal),
        ):
            if not await self.storage.set(key, records):
                raise StorageError("cleanup", key)

        self.cache.clear()
        logger.info(f"Data cleanup completed: {result.to_dict()}")
        await self._emit("all", "cleanup", result.to_dict())
        return result

    async def calculate_storage_size(self) -> int:
        """Length of both collections serialized as compact JSON."""
        size = 0
        for kind in EntryKind:
            records = await self._raw_records(kind)
            size += len(json.dumps(records, separators=(",", ":")))
        return size

    def clear_cache(self) -> None:
        self.cache.clear()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_storage_changed(self, event: StorageChanged) -> None:
        if event.key == StorageKeys.MOOD_ENTRIES:
            self.cache.invalidate(slots.ENTRIES, slots.ANALYTICS)
            logger.debug("Mood entry cache invalidated by external change")
        elif event.key == StorageKeys.JOURNAL_ENTRIES:
            self.cache.invalidate(slots.JOURNAL_ENTRIES, slots.ANALYTICS)
            logger.debug("Journal entry cache invalidated by external change")

    def _on_auth_changed(self, event: AuthChanged) -> None:
        if not event.is_authenticated:
            self.cache.clear()
