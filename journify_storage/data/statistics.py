"""
Entry statistics.

Pure functions over entry lists. ``today`` is passed in so callers decide
what "now" means.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Any

from ..utils import parse_iso_date, round_half_up
from .types import JournalEntry, MoodEntry

DEFAULT_MOOD = "neutral"
WEEK_DAYS = 7
MONTH_DAYS = 30


def _within_days(entry_date: str, today: date, days: int) -> bool:
    parsed = parse_iso_date(entry_date)
    if parsed is None:
        return False
    return today - timedelta(days=days - 1) <= parsed <= today


def most_common_mood(entries: Sequence[MoodEntry]) -> str:
    """Most frequent mood label.

    Ties go to the label that appears first in stored order.
    """
    counts: dict[str, int] = {}
    for entry in entries:
        if entry.mood:
            counts[entry.mood] = counts.get(entry.mood, 0) + 1
    if not counts:
        return DEFAULT_MOOD

    best = DEFAULT_MOOD
    best_count = 0
    # dicts keep first-insertion order, so strict > keeps the earliest label
    for mood, count in counts.items():
        if count > best_count:
            best, best_count = mood, count
    return best


def mood_stats(entries: Sequence[MoodEntry], today: date) -> dict[str, Any]:
    distribution: dict[str, int] = {}
    for entry in entries:
        if entry.mood:
            distribution[entry.mood] = distribution.get(entry.mood, 0) + 1

    return {
        "totalEntries": len(entries),
        "averageMood": most_common_mood(entries),
        "moodDistribution": distribution,
        "weeklyEntries": sum(1 for e in entries if _within_days(e.date, today, WEEK_DAYS)),
        "monthlyEntries": sum(1 for e in entries if _within_days(e.date, today, MONTH_DAYS)),
    }


def journal_stats(entries: Sequence[JournalEntry], today: date) -> dict[str, Any]:
    total_words = sum(e.journal_entry.word_count() for e in entries)
    return {
        "totalEntries": len(entries),
        "totalWords": total_words,
        "averageWordCount": round_half_up(total_words / len(entries)) if entries else 0,
        "weeklyEntries": sum(1 for e in entries if _within_days(e.date, today, WEEK_DAYS)),
        "monthlyEntries": sum(1 for e in entries if _within_days(e.date, today, MONTH_DAYS)),
    }


def streak_stats(entries: Sequence[MoodEntry], today: date) -> dict[str, int]:
    """Current, longest and total streak over unique entry dates.

    The current streak counts back from ``today`` and is 0 when today has
    no entry.
    """
    dates = {d for d in (parse_iso_date(e.date) for e in entries) if d is not None}
    if not dates:
        return {"current": 0, "longest": 0, "total": 0}

    current = 0
    day = today
    while day in dates:
        current += 1
        day -= timedelta(days=1)

    longest = 0
    run = 0
    previous: date | None = None
    for day in sorted(dates):
        if previous is not None and (day - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day

    return {"current": current, "longest": longest, "total": len(dates)}


def overall_stats(
    mood_entries: Sequence[MoodEntry],
    journal_entries: Sequence[JournalEntry],
) -> dict[str, int]:
    total_days = max(len(mood_entries), len(journal_entries))
    journal_dates = {e.date for e in journal_entries}
    complete_days = sum(1 for e in mood_entries if e.date in journal_dates)

    return {
        "totalDays": total_days,
        "completeDays": complete_days,
        "completionRate": round_half_up(complete_days / total_days * 100) if total_days else 0,
        "moodOnlyDays": len(mood_entries) - complete_days,
        "journalOnlyDays": len(journal_entries) - complete_days,
    }


def compute_statistics(
    mood_entries: Sequence[MoodEntry],
    journal_entries: Sequence[JournalEntry],
    today: date,
) -> dict[str, Any]:
    """All four statistic groups in their exported shape."""
    return {
        "mood": mood_stats(mood_entries, today),
        "journal": journal_stats(journal_entries, today),
        "streaks": streak_stats(mood_entries, today),
        "overall": overall_stats(mood_entries, journal_entries),
    }


def default_statistics() -> dict[str, Any]:
    """Statistics of an empty account."""
    return compute_statistics([], [], date.today())


def date_range(dates: Iterable[str]) -> dict[str, str | None]:
    """Earliest and latest of some ISO dates (they sort chronologically)."""
    ordered = sorted(dates)
    if not ordered:
        return {"earliest": None, "latest": None}
    return {"earliest": ordered[0], "latest": ordered[-1]}
