"""
Configuration for the Journify storage core.

Values come from dataclass defaults, an optional YAML settings file
(``~/.journify/settings.yaml``, ``journify:`` section) and environment
variables, in increasing order of precedence.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".journify" / "settings.yaml"
DEFAULT_STORAGE_PATH = Path.home() / ".journify" / "storage"

STORAGE_BACKENDS = ("file", "memory")

# env var -> (field, parser)
_ENV_FIELDS: dict[str, tuple[str, str]] = {
    "JOURNIFY_APP_VERSION": ("app_version", "str"),
    "JOURNIFY_STORAGE_BACKEND": ("storage_backend", "str"),
    "JOURNIFY_STORAGE_PATH": ("storage_path", "str"),
    "JOURNIFY_QUOTA_BYTES": ("quota_bytes", "int"),
    "JOURNIFY_COMPRESSION": ("compression_enabled", "bool"),
    "JOURNIFY_ENCRYPTION_KEY": ("encryption_key", "str"),
    "JOURNIFY_TOKEN_SECRET": ("token_secret", "str"),
    "JOURNIFY_CACHE_TTL": ("cache_ttl_seconds", "float"),
    "JOURNIFY_BCRYPT_ROUNDS": ("bcrypt_rounds", "int"),
    "JOURNIFY_SEED_DEMO_USERS": ("seed_demo_users", "bool"),
    "JOURNIFY_DEBUG": ("debug", "bool"),
}


@dataclass
class JournifyConfig:
    """Settings shared by the storage, session and data layers.

    Attributes:
        app_version: Version stamped into storage and envelopes
        storage_backend: "file" for a persistent store, "memory" for a volatile one
        storage_path: Directory of the file store (None = ~/.journify/storage)
        quota_bytes: Capacity of the store before writes are refused

        compression_enabled: Default for ``StorageService.set(compress=None)``
        compression_threshold: Serialized length above which values are compressed
        encryption_key: Secret for encrypted values (None = key file / ephemeral key)

        token_secret: HMAC secret for session tokens (None = kept beside a file store)
        auth_token_ttl_seconds: Lifetime of auth tokens
        refresh_token_ttl_seconds: Lifetime of refresh tokens
        refresh_lead_seconds: How long before auth token expiry the refresh timer fires
        refresh_window_seconds: Remaining lifetime under which ``should_refresh`` is true
        bcrypt_rounds: Cost factor for password hashing
        seed_demo_users: Seed the demo accounts into the mock user list

        cache_ttl_seconds: Freshness window of the data-layer cache
        debug: Enable debug logging for the package
    """

    app_version: str = "1.0.0"
    storage_backend: str = "file"
    storage_path: str | None = None
    quota_bytes: int = 10 * 1024 * 1024

    compression_enabled: bool = True
    compression_threshold: int = 1000
    encryption_key: str | None = None

    token_secret: str | None = None
    auth_token_ttl_seconds: int = 60 * 60
    refresh_token_ttl_seconds: int = 7 * 24 * 60 * 60
    refresh_lead_seconds: int = 5 * 60
    refresh_window_seconds: int = 10 * 60
    bcrypt_rounds: int = 12
    seed_demo_users: bool = True

    cache_ttl_seconds: float = 5 * 60
    debug: bool = False

    def __post_init__(self) -> None:
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"storage_backend must be one of {STORAGE_BACKENDS}, got {self.storage_backend!r}"
            )
        if self.bcrypt_rounds < 4:
            raise ValueError(f"bcrypt_rounds must be >= 4, got {self.bcrypt_rounds}")

    @property
    def resolved_storage_path(self) -> Path:
        """Directory of the file store."""
        return Path(self.storage_path).expanduser() if self.storage_path else DEFAULT_STORAGE_PATH

    @property
    def refresh_delay_seconds(self) -> int:
        """Delay between a token transition and the automatic refresh."""
        return max(self.auth_token_ttl_seconds - self.refresh_lead_seconds, 0)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JournifyConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_file(cls, path: Path | None = None) -> JournifyConfig:
        """Load the ``journify:`` section of a YAML settings file.

        A missing or unreadable file yields the defaults; values the
        config rejects keep their defaults.
        """
        path = path or DEFAULT_SETTINGS_PATH
        if not path.exists():
            return cls()

        try:
            content = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read settings file {path}: {e}")
            return cls()

        section = content.get("journify") if isinstance(content, dict) else None
        if not isinstance(section, dict):
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls()._with_overrides(
            {k: v for k, v in section.items() if k in known}, str(path)
        )

    @classmethod
    def from_environment(cls, base: JournifyConfig | None = None) -> JournifyConfig:
        """Overlay ``JOURNIFY_*`` environment variables onto a config.

        Args:
            base: Config to start from (default: dataclass defaults)

        Returns:
            New config; unparseable values keep the base value
        """
        base = base or cls()
        overrides: dict[str, Any] = {}

        for env_name, (field_name, kind) in _ENV_FIELDS.items():
            raw = os.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                overrides[field_name] = _parse(raw, kind)
            except ValueError:
                logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")

        return base._with_overrides(overrides, "environment")

    def _with_overrides(self, overrides: dict[str, Any], source: str) -> JournifyConfig:
        """Apply values one at a time, skipping any the config rejects."""
        config = self
        for field_name, value in overrides.items():
            try:
                config = replace(config, **{field_name: value})
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring {field_name}={value!r} from {source}: {e}")
        return config

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary, without secrets."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["encryption_key"] = "***" if self.encryption_key else None
        data["token_secret"] = "***" if self.token_secret else None
        return data


def load_config(path: Path | None = None) -> JournifyConfig:
    """Settings file values overridden by environment variables."""
    return JournifyConfig.from_environment(JournifyConfig.from_file(path))


def _parse(raw: str, kind: str) -> Any:
    if kind == "int":
        return int(raw)
    if kind == "float":
        return float(raw)
    if kind == "bool":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return raw
