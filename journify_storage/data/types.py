"""
Data layer types.

Mood and journal entries are persisted as lists of camelCase dicts; the
dataclasses here are the typed view the data service hands to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..storage.keys import StorageKeys

ENTRY_VERSION = "1.0.0"

JOURNAL_FIELD_NAMES = ("wentWell", "couldImprove", "tomorrowGoal")


class EntryKind(Enum):
    """The two entry collections."""

    MOOD = "mood"
    JOURNAL = "journal"

    @property
    def event_type(self) -> str:
        """Type name used on data-changed events."""
        return "moodEntry" if self is EntryKind.MOOD else "journalEntry"

    @property
    def storage_key(self) -> str:
        return StorageKeys.MOOD_ENTRIES if self is EntryKind.MOOD else StorageKeys.JOURNAL_ENTRIES

    @property
    def export_name(self) -> str:
        return "moodEntries" if self is EntryKind.MOOD else "journalEntries"


@dataclass
class MoodEntry:
    """How the user felt on one calendar day."""

    date: str
    mood: str
    mood_note: str = ""
    timestamp: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "mood": self.mood,
            "moodNote": self.mood_note,
            "timestamp": self.timestamp,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MoodEntry:
        return cls(
            date=data["date"],
            mood=data.get("mood") or "",
            mood_note=data.get("moodNote") or "",
            timestamp=data.get("timestamp"),
            id=data.get("id"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            version=data.get("version"),
        )


@dataclass
class JournalFields:
    """The three reflection prompts of a journal entry."""

    went_well: str = ""
    could_improve: str = ""
    tomorrow_goal: str = ""

    @property
    def text(self) -> str:
        return " ".join([self.went_well, self.could_improve, self.tomorrow_goal])

    def word_count(self) -> int:
        return len(self.text.split())

    def to_dict(self) -> dict[str, str]:
        return {
            "wentWell": self.went_well,
            "couldImprove": self.could_improve,
            "tomorrowGoal": self.tomorrow_goal,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> JournalFields:
        data = data or {}

        def text(name: str) -> str:
            value = data.get(name)
            return value if isinstance(value, str) else ""

        return cls(
            went_well=text("wentWell"),
            could_improve=text("couldImprove"),
            tomorrow_goal=text("tomorrowGoal"),
        )


@dataclass
class JournalEntry:
    """Reflections written for one calendar day."""

    date: str
    journal_entry: JournalFields = field(default_factory=JournalFields)
    timestamp: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "journalEntry": self.journal_entry.to_dict(),
            "timestamp": self.timestamp,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JournalEntry:
        return cls(
            date=data["date"],
            journal_entry=JournalFields.from_dict(data.get("journalEntry")),
            timestamp=data.get("timestamp"),
            id=data.get("id"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            version=data.get("version"),
        )


Entry = MoodEntry | JournalEntry


@dataclass(frozen=True)
class SearchResult:
    """A search hit tagged with the collection it came from."""

    kind: EntryKind
    entry: Entry

    @property
    def date(self) -> str:
        return self.entry.date

    def to_dict(self) -> dict[str, Any]:
        return {**self.entry.to_dict(), "type": self.kind.value}


@dataclass
class CombinedEntry:
    """Mood and journal entry of the same day."""

    date: str
    mood: MoodEntry | None = None
    journal: JournalEntry | None = None

    @property
    def has_entry(self) -> bool:
        return self.mood is not None or self.journal is not None


@dataclass
class BulkResult:
    """Outcome of a bulk save or delete."""

    success: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def add_failure(self, date: Any, message: str) -> None:
        self.failed += 1
        self.errors.append({"date": str(date), "error": message})


@dataclass
class ImportCounts:
    """Per-collection import tally."""

    imported: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"imported": self.imported, "skipped": self.skipped, "errors": self.errors}
