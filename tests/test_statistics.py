"""Tests for entry statistics."""

from __future__ import annotations

from datetime import date

from journify_storage.data import JournalEntry, JournalFields, MoodEntry
from journify_storage.data.statistics import (
    compute_statistics,
    date_range,
    default_statistics,
    journal_stats,
    mood_stats,
    most_common_mood,
    overall_stats,
    streak_stats,
)


def moods(*pairs: tuple[str, str]) -> list[MoodEntry]:
    return [MoodEntry(date=day, mood=mood) for day, mood in pairs]


def moods_on(*days: str) -> list[MoodEntry]:
    return [MoodEntry(date=day, mood="happy") for day in days]


def journals(*texts: tuple[str, str]) -> list[JournalEntry]:
    return [
        JournalEntry(date=day, journal_entry=JournalFields(went_well=text)) for day, text in texts
    ]


class TestStreaks:
    """Tests for streak calculation."""

    def test_consecutive_days_ending_today(self) -> None:
        """Test a three day run that ends today."""
        entries = moods_on("2025-01-01", "2025-01-02", "2025-01-03")

        assert streak_stats(entries, date(2025, 1, 3)) == {"current": 3, "longest": 3, "total": 3}

    def test_isolated_later_day(self) -> None:
        """Test that a separate later day does not extend either streak."""
        entries = moods_on("2025-01-01", "2025-01-02", "2025-01-03", "2025-01-10")

        assert streak_stats(entries, date(2025, 1, 3)) == {"current": 3, "longest": 3, "total": 4}

    def test_no_entry_today(self) -> None:
        """Test that the current streak is zero when today has no entry."""
        entries = moods_on("2025-01-01", "2025-01-02")

        stats = streak_stats(entries, date(2025, 1, 3))

        assert stats["current"] == 0
        assert stats["longest"] == 2

    def test_longest_run_in_the_past(self) -> None:
        entries = moods_on(
            "2024-12-01", "2024-12-02", "2024-12-03", "2024-12-04", "2025-01-02", "2025-01-03"
        )

        assert streak_stats(entries, date(2025, 1, 3)) == {"current": 2, "longest": 4, "total": 6}

    def test_duplicate_dates_counted_once(self) -> None:
        entries = moods_on("2025-01-03", "2025-01-03")

        assert streak_stats(entries, date(2025, 1, 3)) == {"current": 1, "longest": 1, "total": 1}

    def test_empty(self) -> None:
        assert streak_stats([], date(2025, 1, 3)) == {"current": 0, "longest": 0, "total": 0}


class TestMoodStats:
    """Tests for mood statistics."""

    def test_most_common_tie_goes_to_first_label(self) -> None:
        """Test that equally frequent labels resolve to stored order."""
        entries = moods(
            ("2025-01-01", "sad"),
            ("2025-01-02", "happy"),
            ("2025-01-03", "happy"),
            ("2025-01-04", "sad"),
        )

        assert most_common_mood(entries) == "sad"

    def test_most_common(self) -> None:
        entries = moods(("2025-01-01", "sad"), ("2025-01-02", "happy"), ("2025-01-03", "happy"))

        assert most_common_mood(entries) == "happy"

    def test_default_mood(self) -> None:
        assert most_common_mood([]) == "neutral"

    def test_windows(self) -> None:
        """Test the inclusive 7 and 30 day windows ending today."""
        entries = moods(
            ("2025-01-30", "happy"),
            ("2025-01-24", "happy"),  # today - 6
            ("2025-01-23", "calm"),  # today - 7
            ("2025-01-01", "calm"),  # today - 29
            ("2024-12-31", "sad"),  # today - 30
            ("2025-01-31", "sad"),  # tomorrow
        )

        stats = mood_stats(entries, date(2025, 1, 30))

        assert stats["totalEntries"] == 6
        assert stats["weeklyEntries"] == 2
        assert stats["monthlyEntries"] == 4
        assert stats["moodDistribution"] == {"happy": 2, "calm": 2, "sad": 2}
        assert stats["averageMood"] == "happy"


class TestJournalAndOverall:
    """Tests for journal and overall statistics."""

    def test_word_counts_round_half_up(self) -> None:
        entries = journals(("2025-01-01", "one two"), ("2025-01-02", "one two three"))

        stats = journal_stats(entries, date(2025, 1, 3))

        assert stats["totalEntries"] == 2
        assert stats["totalWords"] == 5
        assert stats["averageWordCount"] == 3
        assert stats["weeklyEntries"] == 2

    def test_words_across_fields(self) -> None:
        fields = JournalFields(went_well="a b", could_improve="c", tomorrow_goal="d e f")

        assert fields.word_count() == 6

    def test_overall(self) -> None:
        """Test completion counts over both collections."""
        mood_entries = moods_on(*(f"2025-01-0{day}" for day in range(1, 9)))
        journal_entries = journals(("2025-01-01", "done"), ("2025-02-01", "other"))

        stats = overall_stats(mood_entries, journal_entries)

        assert stats == {
            "totalDays": 8,
            "completeDays": 1,
            "completionRate": 13,
            "moodOnlyDays": 7,
            "journalOnlyDays": 1,
        }

    def test_empty(self) -> None:
        stats = default_statistics()

        assert stats["mood"]["totalEntries"] == 0
        assert stats["mood"]["averageMood"] == "neutral"
        assert stats["journal"]["averageWordCount"] == 0
        assert stats["streaks"] == {"current": 0, "longest": 0, "total": 0}
        assert stats["overall"]["completionRate"] == 0

    def test_groups(self) -> None:
        stats = compute_statistics(moods_on("2025-01-03"), [], date(2025, 1, 3))

        assert set(stats) == {"mood", "journal", "streaks", "overall"}
        assert stats["streaks"]["current"] == 1


class TestDateRange:
    def test_range(self) -> None:
        assert date_range(["2025-01-02", "2024-12-31", "2025-01-01"]) == {
            "earliest": "2024-12-31",
            "latest": "2025-01-02",
        }

    def test_empty(self) -> None:
        assert date_range([]) == {"earliest": None, "latest": None}
