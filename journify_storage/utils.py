"""Shared utility functions for Journify storage.

Clock access, timestamp formatting, calendar-date parsing and id
generation used by the storage, session and data layers.
"""

from __future__ import annotations

import re
import secrets
import string
import time
from datetime import UTC, date, datetime

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_BASE36 = string.digits + string.ascii_lowercase


class Clock:
    """Source of "now" for every time-dependent decision.

    Tests substitute a controllable subclass; production code uses this
    wall-clock implementation.
    """

    def time(self) -> float:
        """Seconds since the epoch."""
        return time.time()

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.time(), UTC)

    def today(self) -> date:
        """Current UTC calendar date."""
        return self.now().date()

    def millis(self) -> int:
        """Milliseconds since the epoch."""
        return int(self.time() * 1000)


def isoformat_z(value: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso_date(value: object) -> date | None:
    """Parse a strict ``YYYY-MM-DD`` string naming a real calendar date.

    Returns:
        The date, or None when the value is not such a string
    """
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def is_valid_date_string(value: object) -> bool:
    """True for ``YYYY-MM-DD`` strings that name a real calendar date."""
    return parse_iso_date(value) is not None


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate_entry_id(clock: Clock | None = None) -> str:
    """Generate an entry id: ``entry_<base36 millis>_<random>``."""
    millis = (clock or Clock()).millis()
    return f"entry_{to_base36(millis)}_{_random_suffix()}"


def generate_user_id(clock: Clock | None = None) -> str:
    """Generate a user id: ``user_<base36 millis>_<random>``."""
    millis = (clock or Clock()).millis()
    return f"user_{to_base36(millis)}_{_random_suffix()}"
