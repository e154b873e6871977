"""Storage key names used by the Journify application."""


class StorageKeys:
    """Namespaced keys of the key-value store."""

    # Authentication
    USER_TOKEN = "journify_user_token"
    USER_DATA = "journify_user_data"
    REFRESH_TOKEN = "journify_refresh_token"
    REMEMBERED_EMAIL = "journify_remembered_email"

    # Preferences
    THEME = "journify_theme"
    MOOD_BASED_THEME = "journify_mood_based_theme"
    NOTIFICATIONS_ENABLED = "journify_notifications_enabled"
    LANGUAGE = "journify_language"

    # Entries
    MOOD_ENTRIES = "journify_mood_entries"
    JOURNAL_ENTRIES = "journify_journal_entries"
    USER_STREAKS = "journify_user_streaks"

    # Caches and app state
    ANALYTICS_CACHE = "journify_analytics_cache"
    ONBOARDING_COMPLETED = "journify_onboarding_completed"
    LAST_SYNC = "journify_last_sync"
    OFFLINE_QUEUE = "journify_offline_queue"
    APP_VERSION = "journify_app_version"

    # Pre-1.0 entry list
    LEGACY_ENTRIES = "journify_entries"

    @classmethod
    def by_name(cls) -> dict[str, str]:
        """Current application keys by constant name, in declaration order."""
        return {
            name: value
            for name, value in vars(cls).items()
            if name.isupper() and name != "LEGACY_ENTRIES" and isinstance(value, str)
        }

    @classmethod
    def all(cls) -> list[str]:
        """Every current application key, in declaration order."""
        return list(cls.by_name().values())

    @classmethod
    def is_app_key(cls, key: str) -> bool:
        return key in cls.all()


# Survive clear(keep_preferences=True)
PRESERVED_KEYS = (
    StorageKeys.THEME,
    StorageKeys.LANGUAGE,
    StorageKeys.NOTIFICATIONS_ENABLED,
    StorageKeys.REMEMBERED_EMAIL,
)

# Removable under quota pressure
EVICTABLE_KEYS = (
    StorageKeys.ANALYTICS_CACHE,
    StorageKeys.USER_STREAKS,
    StorageKeys.LAST_SYNC,
    StorageKeys.OFFLINE_QUEUE,
)

# Never exported or imported as plain values
SENSITIVE_KEYS = (
    StorageKeys.USER_TOKEN,
    StorageKeys.REFRESH_TOKEN,
)
