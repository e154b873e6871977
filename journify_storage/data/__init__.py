"""
Data access layer.

Mood and journal entry storage, statistics, search and backup.
"""

from .cache import EntryCache
from .integrity import CleanupResult, IntegrityReport, IntegrityWarning
from .service import DataService
from .statistics import compute_statistics, default_statistics
from .types import (
    BulkResult,
    CombinedEntry,
    EntryKind,
    ImportCounts,
    JournalEntry,
    JournalFields,
    MoodEntry,
    SearchResult,
)

__all__ = [
    "BulkResult",
    "CleanupResult",
    "CombinedEntry",
    "DataService",
    "EntryCache",
    "EntryKind",
    "ImportCounts",
    "IntegrityReport",
    "IntegrityWarning",
    "JournalEntry",
    "JournalFields",
    "MoodEntry",
    "SearchResult",
    "compute_statistics",
    "default_statistics",
]
