"""
Authentication and session management.

Provides the session manager, signed tokens, password hashing and the
in-process user list.
"""

from .passwords import hash_password, verify_password
from .session import SessionManager
from .tokens import TokenService
from .types import (
    AuthErrorKind,
    AuthResult,
    SessionState,
    TokenClaims,
    TokenPair,
    User,
    UserPreferences,
)
from .users import MockUserDirectory

__all__ = [
    "AuthErrorKind",
    "AuthResult",
    "MockUserDirectory",
    "SessionManager",
    "SessionState",
    "TokenClaims",
    "TokenPair",
    "TokenService",
    "User",
    "UserPreferences",
    "hash_password",
    "verify_password",
]
