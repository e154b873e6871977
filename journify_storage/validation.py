"""
Input validation for account and entry forms.

Each validator returns a ``ValidationResult`` rather than raising, so
callers can show every problem at once. The session manager turns a
failed result into an ``INVALID_INPUT`` failure; forms can use
``validate_form`` to check several fields in one call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .utils import Clock, parse_iso_date

EMAIL_MIN_LENGTH = 5
EMAIL_MAX_LENGTH = 254
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
NAME_PATTERN = re.compile(r"[a-zA-Z\s'-]+")

MOOD_NOTE_MIN_LENGTH = 3
MOOD_NOTE_MAX_LENGTH = 500

JOURNAL_MIN_LENGTH = 10
JOURNAL_MAX_LENGTH = 2000

REQUIRED_FIELD = "This field is required."
INVALID_EMAIL_FORMAT = "Please enter a valid email address."
PASSWORD_TOO_SHORT = f"Password must be at least {PASSWORD_MIN_LENGTH} characters long."
NAME_TOO_SHORT = f"Name must be at least {NAME_MIN_LENGTH} characters long."
MOOD_NOTE_TOO_SHORT = f"Mood note must be at least {MOOD_NOTE_MIN_LENGTH} characters long."
JOURNAL_TOO_SHORT = f"Journal entry must be at least {JOURNAL_MIN_LENGTH} characters long."
INVALID_DATE = "Please select a valid date."
FUTURE_DATE_NOT_ALLOWED = "Future dates are not allowed."

EMAIL_DOMAIN_TYPOS = {
    "gmial.com": "gmail.com",
    "gmai.com": "gmail.com",
    "yahooo.com": "yahoo.com",
    "yaho.com": "yahoo.com",
    "hotmial.com": "hotmail.com",
    "hotmai.com": "hotmail.com",
    "outlok.com": "outlook.com",
    "outloook.com": "outlook.com",
}

DISPOSABLE_EMAIL_DOMAINS = frozenset(
    {
        "10minutemail.com",
        "tempmail.org",
        "guerrillamail.com",
        "mailinator.com",
        "yopmail.com",
        "temp-mail.org",
    }
)


@dataclass
class ValidationResult:
    """Outcome of validating one value."""

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    # Password strength (only set by validate_password)
    strength: str | None = None
    strength_score: int | None = None
    strength_feedback: list[str] = field(default_factory=list)

    def fail(self, message: str) -> ValidationResult:
        self.is_valid = False
        self.errors.append(message)
        return self

    @property
    def message(self) -> str:
        """Errors joined for display."""
        return ", ".join(self.errors)


@dataclass
class FormValidationResult:
    """Per-field outcome of ``validate_form``."""

    is_valid: bool = True
    errors: dict[str, list[str]] = field(default_factory=dict)
    warnings: dict[str, list[str]] = field(default_factory=dict)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email(email: Any) -> ValidationResult:
    """Validate an email address after trimming and lowercasing.

    Warns (without failing) about common domain typos and disposable
    email providers.
    """
    result = ValidationResult()
    if not email or not isinstance(email, str):
        return result.fail(REQUIRED_FIELD)

    email = normalize_email(email)

    if len(email) < EMAIL_MIN_LENGTH:
        result.fail(f"Email must be at least {EMAIL_MIN_LENGTH} characters long.")
    if len(email) > EMAIL_MAX_LENGTH:
        result.fail(f"Email must be less than {EMAIL_MAX_LENGTH} characters long.")
    if not EMAIL_PATTERN.fullmatch(email):
        result.fail(INVALID_EMAIL_FORMAT)

    if result.is_valid:
        result.warnings.extend(check_email_typos(email))
        if is_disposable_email(email):
            result.warnings.append("This appears to be a temporary email address.")

    return result


def check_email_typos(email: str) -> list[str]:
    """Suggest a correction for commonly mistyped email domains."""
    _, _, domain = email.partition("@")
    if domain in EMAIL_DOMAIN_TYPOS:
        return [f"Did you mean {email.replace(domain, EMAIL_DOMAIN_TYPOS[domain])}?"]
    return []


def is_disposable_email(email: str) -> bool:
    _, _, domain = email.partition("@")
    return domain in DISPOSABLE_EMAIL_DOMAINS


def is_valid_email(email: Any) -> bool:
    """Pattern-only email check."""
    if not email or not isinstance(email, str):
        return False
    return EMAIL_PATTERN.fullmatch(normalize_email(email)) is not None


def validate_password(password: Any) -> ValidationResult:
    """Validate password length and score its strength."""
    result = ValidationResult(strength="weak")
    if not password or not isinstance(password, str):
        return result.fail(REQUIRED_FIELD)

    if len(password) < PASSWORD_MIN_LENGTH:
        result.fail(PASSWORD_TOO_SHORT)
    if len(password) > PASSWORD_MAX_LENGTH:
        result.fail(f"Password must be less than {PASSWORD_MAX_LENGTH} characters long.")

    if result.is_valid:
        score, level, feedback = password_strength(password)
        result.strength = level
        result.strength_score = score
        result.strength_feedback = feedback

    return result


def is_valid_password(password: Any) -> bool:
    return isinstance(password, str) and len(password) >= PASSWORD_MIN_LENGTH


def password_strength(password: str) -> tuple[int, str, list[str]]:
    """Score a password from 0 to 105.

    Returns:
        (score, level, feedback) with level one of very-weak, weak,
        medium, strong, very-strong
    """
    score = 0
    feedback = []

    if len(password) >= 8:
        score += 25
    elif len(password) >= 6:
        score += 10
    else:
        feedback.append("Use at least 8 characters")

    checks = (
        (r"[a-z]", 15, "Include lowercase letters"),
        (r"[A-Z]", 15, "Include uppercase letters"),
        (r"[0-9]", 15, "Include numbers"),
        (r"[^A-Za-z0-9]", 20, "Include special characters"),
    )
    for pattern, points, hint in checks:
        if re.search(pattern, password):
            score += points
        else:
            feedback.append(hint)

    if len(password) >= 12:
        score += 10
    if len(re.findall(r"[^A-Za-z0-9]", password)) >= 2:
        score += 5

    if score >= 80:
        level = "very-strong"
    elif score >= 60:
        level = "strong"
    elif score >= 40:
        level = "medium"
    elif score >= 20:
        level = "weak"
    else:
        level = "very-weak"

    return score, level, feedback or ["Great password!"]


def validate_name(name: Any) -> ValidationResult:
    """Validate a display name: 2-50 letters, spaces, hyphens or apostrophes."""
    result = ValidationResult()
    if not name or not isinstance(name, str):
        return result.fail(REQUIRED_FIELD)

    name = name.strip()
    if len(name) < NAME_MIN_LENGTH:
        result.fail(NAME_TOO_SHORT)
    if len(name) > NAME_MAX_LENGTH:
        result.fail(f"Name must be less than {NAME_MAX_LENGTH} characters long.")
    if not NAME_PATTERN.fullmatch(name):
        result.fail("Name can only contain letters, spaces, hyphens, and apostrophes.")

    return result


def validate_mood_note(note: Any) -> ValidationResult:
    result = ValidationResult()
    if not note or not isinstance(note, str):
        return result.fail(REQUIRED_FIELD)

    note = note.strip()
    if len(note) < MOOD_NOTE_MIN_LENGTH:
        result.fail(MOOD_NOTE_TOO_SHORT)
    if len(note) > MOOD_NOTE_MAX_LENGTH:
        result.fail(f"Mood note must be less than {MOOD_NOTE_MAX_LENGTH} characters long.")

    return result


def validate_journal_entry(entry: Any) -> ValidationResult:
    result = ValidationResult()
    if not entry or not isinstance(entry, str):
        return result.fail(REQUIRED_FIELD)

    entry = entry.strip()
    if len(entry) < JOURNAL_MIN_LENGTH:
        result.fail(JOURNAL_TOO_SHORT)
    if len(entry) > JOURNAL_MAX_LENGTH:
        result.fail(f"Journal entry must be less than {JOURNAL_MAX_LENGTH} characters long.")

    return result


def validate_date(
    value: Any,
    allow_future: bool = False,
    today: date | None = None,
) -> ValidationResult:
    """Validate a ``YYYY-MM-DD`` string or ``date``.

    Args:
        value: Date to check
        allow_future: Accept dates after today
        today: Reference date (default: today in UTC)
    """
    result = ValidationResult()
    if not value:
        return result.fail(REQUIRED_FIELD)

    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        parsed = parse_iso_date(value)
        if parsed is None:
            return result.fail(INVALID_DATE)

    if not allow_future and parsed > (today or Clock().today()):
        result.fail(FUTURE_DATE_NOT_ALLOWED)

    return result


def validate_generic(value: Any, rule: dict[str, Any]) -> ValidationResult:
    """Apply a custom rule.

    Supported rule keys: ``required``, ``type`` (python type),
    ``min_length``, ``max_length``, ``pattern``, ``pattern_message``,
    ``min``, ``max``.
    """
    result = ValidationResult()
    empty = value is None or value == "" or (isinstance(value, str) and not value.strip())

    if empty:
        if rule.get("required"):
            result.fail(REQUIRED_FIELD)
        return result

    expected = rule.get("type")
    if isinstance(expected, type) and not isinstance(value, expected):
        result.fail(f"Value must be a {expected.__name__}")

    if isinstance(value, str):
        if rule.get("min_length") and len(value) < rule["min_length"]:
            result.fail(f"Must be at least {rule['min_length']} characters long")
        if rule.get("max_length") and len(value) > rule["max_length"]:
            result.fail(f"Must be less than {rule['max_length']} characters long")
        pattern = rule.get("pattern")
        if pattern and not re.fullmatch(pattern, value):
            result.fail(rule.get("pattern_message", "Invalid format"))

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if rule.get("min") is not None and value < rule["min"]:
            result.fail(f"Must be at least {rule['min']}")
        if rule.get("max") is not None and value > rule["max"]:
            result.fail(f"Must be at most {rule['max']}")

    return result


_FIELD_VALIDATORS = {
    "email": validate_email,
    "password": validate_password,
    "name": validate_name,
    "moodNote": validate_mood_note,
    "journalEntry": validate_journal_entry,
}


def validate_form(data: dict[str, Any], rules: dict[str, dict[str, Any]]) -> FormValidationResult:
    """Validate several fields at once.

    Args:
        data: Field values by name
        rules: Rule per field; ``kind`` selects a built-in validator
            (email, password, name, moodNote, journalEntry, date), any
            other rule is handled by ``validate_generic``

    Example:
        >>> validate_form(
        ...     {"email": "a@b.co", "name": "Al"},
        ...     {"email": {"kind": "email"}, "name": {"kind": "name"}},
        ... ).is_valid
        True
    """
    form = FormValidationResult()

    for field_name, rule in rules.items():
        value = data.get(field_name)
        kind = rule.get("kind")
        if kind == "date":
            field_result = validate_date(value, rule.get("allow_future", False))
        elif kind in _FIELD_VALIDATORS:
            field_result = _FIELD_VALIDATORS[kind](value)
        else:
            field_result = validate_generic(value, rule)

        if not field_result.is_valid:
            form.is_valid = False
            form.errors[field_name] = field_result.errors
        if field_result.warnings:
            form.warnings[field_name] = field_result.warnings

    return form


_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}


def sanitize_input(value: Any) -> Any:
    """Escape HTML-significant characters in strings; other values pass through."""
    if not isinstance(value, str):
        return value
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in value)


def is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()
