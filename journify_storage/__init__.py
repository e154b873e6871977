"""
Journify Storage

Client-side core of the Journify mood journal: persistent key-value
storage, sessions and mood/journal entry data.

Provides:
- Envelope-based storage over file or memory stores, with compression,
  encryption, quota recovery and version migrations
- Session management with signed tokens, automatic refresh and
  cross-context login/logout propagation
- Mood and journal entry CRUD, statistics, search, import/export and
  integrity checks

Usage:

    >>> from journify_storage import EntryKind, JournifyConfig, create_app
    >>> async with await create_app(JournifyConfig(storage_backend="memory")) as app:
    ...     await app.sessions.login("demo@journify.com", "password123")
    ...     await app.data.save(EntryKind.MOOD, {"date": "2025-01-03", "mood": "happy"})
    ...     stats = await app.data.compute_statistics()
"""

# Storage must be imported before migration: the storage service depends on it
from .storage import (
    FileStore,
    KeyValueStore,
    MemoryStore,
    SharedMemoryArea,
    StorageKeys,
    StorageService,
)

from .app import JournifyApp, create_app
from .auth import (
    AuthErrorKind,
    AuthResult,
    MockUserDirectory,
    SessionManager,
    SessionState,
    TokenService,
    User,
    UserPreferences,
)
from .config import JournifyConfig, load_config
from .data import DataService, EntryKind, JournalEntry, MoodEntry
from .events import AuthChanged, DataChanged, EventBus, StorageChanged, StorageFailure
from .exceptions import (
    AuthenticationError,
    EmailExistsError,
    InvalidCredentialsError,
    JournifyError,
    NotAuthenticatedError,
    NotFoundError,
    SessionExpiredError,
    StorageError,
    StoreQuotaExceededError,
    StoreUnavailableError,
    ValidationError,
)
from .migration import StorageMigrator
from .utils import Clock

__all__ = [
    # Composition
    "JournifyApp",
    "create_app",
    "JournifyConfig",
    "load_config",
    "Clock",
    # Storage
    "KeyValueStore",
    "MemoryStore",
    "FileStore",
    "SharedMemoryArea",
    "StorageKeys",
    "StorageService",
    "StorageMigrator",
    # Auth
    "SessionManager",
    "SessionState",
    "TokenService",
    "MockUserDirectory",
    "User",
    "UserPreferences",
    "AuthResult",
    "AuthErrorKind",
    # Data
    "DataService",
    "EntryKind",
    "MoodEntry",
    "JournalEntry",
    # Events
    "EventBus",
    "AuthChanged",
    "DataChanged",
    "StorageChanged",
    "StorageFailure",
    # Exceptions
    "JournifyError",
    "ValidationError",
    "NotFoundError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "EmailExistsError",
    "NotAuthenticatedError",
    "SessionExpiredError",
    "StorageError",
    "StoreQuotaExceededError",
    "StoreUnavailableError",
]

__version__ = "1.0.0"
