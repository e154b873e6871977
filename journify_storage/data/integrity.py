"""
Integrity checks over persisted entry collections.

Works on the raw stored lists, before they are turned into entries, so
malformed records can be counted and stripped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..utils import is_valid_date_string


@dataclass
class IntegrityWarning:
    """One problem found in stored data."""

    type: str
    count: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "count": self.count, "message": self.message}


@dataclass
class IntegrityReport:
    is_valid: bool = True
    issues: list[IntegrityWarning] = field(default_factory=list)
    statistics: dict[str, Any] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)

    def add_issue(self, issue: IntegrityWarning, recommendation: str | None = None) -> None:
        self.is_valid = False
        self.issues.append(issue)
        if recommendation and recommendation not in self.recommendations:
            self.recommendations.append(recommendation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": [issue.to_dict() for issue in self.issues],
            "statistics": self.statistics,
            "recommendations": self.recommendations,
        }


@dataclass
class CleanupResult:
    mood_entries_removed: int = 0
    journal_entries_removed: int = 0
    duplicates_removed: int = 0

    @property
    def total_removed(self) -> int:
        return self.mood_entries_removed + self.journal_entries_removed + self.duplicates_removed

    def to_dict(self) -> dict[str, int]:
        return {
            "moodEntriesRemoved": self.mood_entries_removed,
            "journalEntriesRemoved": self.journal_entries_removed,
            "duplicatesRemoved": self.duplicates_removed,
        }


def is_valid_mood_record(record: Any) -> bool:
    """A stored mood record needs a real ``YYYY-MM-DD`` date."""
    return isinstance(record, dict) and is_valid_date_string(record.get("date"))


def is_valid_journal_record(record: Any) -> bool:
    """A stored journal record needs a real date and a ``journalEntry`` mapping."""
    return is_valid_mood_record(record) and isinstance(record.get("journalEntry"), dict)


def as_record_list(value: Any) -> list[Any]:
    """The stored value as a list (anything else counts as empty)."""
    return list(value) if isinstance(value, list) else []


def split_duplicates(records: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], int]:
    """Keep the first record per date, in stored order.

    Returns:
        Unique records and the number of duplicates dropped
    """
    seen: set[str] = set()
    unique = []
    for record in records:
        if record["date"] in seen:
            continue
        seen.add(record["date"])
        unique.append(record)
    return unique, len(records) - len(unique)
