"""
Authentication types and data classes.

Defines users, their preferences, session state, token claims and the
result object returned by every session operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionState(Enum):
    """Lifecycle state of the session manager."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class AuthErrorKind(Enum):
    """Classification of a failed session operation."""

    INVALID_INPUT = "invalid_input"
    USER_NOT_FOUND = "user_not_found"
    INVALID_PASSWORD = "invalid_password"
    EMAIL_EXISTS = "email_exists"
    NO_REFRESH_TOKEN = "no_refresh_token"
    NOT_AUTHENTICATED = "not_authenticated"
    SESSION_EXPIRED = "session_expired"
    STORAGE = "storage"
    UNEXPECTED = "unexpected"


@dataclass
class UserPreferences:
    """Display and notification preferences of a user."""

    theme: str = "light"
    mood_based_theme: bool = True
    notifications: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "theme": self.theme,
            "moodBasedTheme": self.mood_based_theme,
            "notifications": self.notifications,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UserPreferences:
        data = data or {}
        return cls(
            theme=data.get("theme", "light"),
            mood_based_theme=data.get("moodBasedTheme", True),
            notifications=data.get("notifications", True),
        )


@dataclass
class User:
    """An account in the mock user list.

    Only the public form (without the password hash) is ever persisted or
    broadcast.
    """

    id: str
    email: str
    name: str
    password_hash: str | None = None
    created_at: str | None = None
    has_completed_onboarding: bool = False
    preferences: UserPreferences = field(default_factory=UserPreferences)

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize for storage and events."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "createdAt": self.created_at,
            "hasCompletedOnboarding": self.has_completed_onboarding,
            "preferences": self.preferences.to_dict(),
            # Note: password_hash intentionally excluded
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        """Deserialize from the public form."""
        return cls(
            id=data["id"],
            email=data["email"],
            name=data.get("name", ""),
            created_at=data.get("createdAt"),
            has_completed_onboarding=bool(data.get("hasCompletedOnboarding", False)),
            preferences=UserPreferences.from_dict(data.get("preferences")),
        )


@dataclass(frozen=True)
class TokenClaims:
    """Decoded token payload."""

    sub: str
    iat: int
    exp: int
    email: str | None = None
    type: str | None = None
    jti: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sub": self.sub, "iat": self.iat, "exp": self.exp}
        if self.email is not None:
            data["email"] = self.email
        if self.type is not None:
            data["type"] = self.type
        if self.jti is not None:
            data["jti"] = self.jti
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenClaims:
        return cls(
            sub=str(data["sub"]),
            iat=int(data["iat"]),
            exp=int(data["exp"]),
            email=data.get("email"),
            type=data.get("type"),
            jti=data.get("jti"),
        )


@dataclass(frozen=True)
class TokenPair:
    auth_token: str
    refresh_token: str


@dataclass
class AuthResult:
    """Outcome of a session operation.

    ``message`` is safe to show to the user; ``kind`` classifies failures.
    """

    success: bool
    message: str
    kind: AuthErrorKind | None = None
    user: User | None = None
    tokens: TokenPair | None = None

    @classmethod
    def ok(
        cls,
        message: str,
        user: User | None = None,
        tokens: TokenPair | None = None,
    ) -> AuthResult:
        return cls(success=True, message=message, user=user, tokens=tokens)

    @classmethod
    def failure(cls, kind: AuthErrorKind, message: str) -> AuthResult:
        return cls(success=False, message=message, kind=kind)
