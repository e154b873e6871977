"""
Storage service.

Wraps a key-value store with a versioned envelope, optional compression
and encryption, quota recovery, version migrations and change
re-publication. Failures are logged and published on the
``storage_error`` channel; no store exception escapes this class.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import JournifyConfig
from ..events import EventBus, StorageChanged, StorageFailure
from ..exceptions import StorageError, StoreQuotaExceededError
from ..migration import MigrationBatch, StorageMigrator
from ..utils import Clock, isoformat_z
from .base import KeyValueStore, StoreChange, item_size
from .codec import (
    CodecError,
    EnvelopedRecord,
    LegacyRecord,
    RawRecord,
    decompress_text,
    deserialize_value,
    maybe_compress,
    parse_record,
    serialize_value,
)
from .crypto import KEY_FILE_NAME, ValueCipher, load_or_create_secret
from .file import FileStore
from .keys import EVICTABLE_KEYS, PRESERVED_KEYS, SENSITIVE_KEYS, StorageKeys
from .memory import MemoryStore

logger = logging.getLogger(__name__)

QUOTA_EVICTION_AGE_MS = 90 * 24 * 60 * 60 * 1000


class StorageService:
    """Versioned, envelope-based access to a key-value store.

    Call ``initialize()`` once before use. When the configured store is
    unavailable the service switches to an in-memory store and sets
    ``degraded``; everything keeps working but nothing outlives the process.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: JournifyConfig | None = None,
        events: EventBus | None = None,
        clock: Clock | None = None,
        migrator: StorageMigrator | None = None,
        cipher: ValueCipher | None = None,
    ) -> None:
        self.store = store
        self.config = config or JournifyConfig()
        self.events = events or EventBus()
        self.clock = clock or Clock()
        self.migrator = migrator or StorageMigrator()
        self.degraded = False
        self.last_migration: MigrationBatch | None = None

        self._cipher = cipher
        self._initialized = False
        self._reads = 0
        self._writes = 0
        self._errors = 0

    @property
    def app_version(self) -> str:
        return self.config.app_version

    async def initialize(self) -> None:
        """Probe the store, prepare encryption and reconcile the stored version."""
        if self._initialized:
            return

        if not await self.store.is_available():
            logger.warning(
                "Persistent storage unavailable; falling back to in-memory storage. "
                "Data will not survive the process."
            )
            await self.store.close()
            self.store = MemoryStore(quota_bytes=self.config.quota_bytes)
            self.degraded = True

        if self._cipher is None:
            self._cipher = await self._create_cipher()

        self.store.add_change_listener(self._on_store_change)
        self._initialized = True
        await self._check_version()

    async def persistent_secret(self, file_name: str = KEY_FILE_NAME) -> str | None:
        """Secret kept in a private file beside the store's data.

        Created on first use. Returns None when the store does not outlive
        the process or the file cannot be used.
        """
        if not isinstance(self.store, FileStore):
            return None
        try:
            return await load_or_create_secret(self.store.base_path, file_name)
        except StorageError as e:
            logger.warning(f"Could not use secret file {file_name}: {e}")
            return None

    async def _create_cipher(self) -> ValueCipher:
        if self.config.encryption_key:
            return ValueCipher(self.config.encryption_key)
        secret = await self.persistent_secret()
        if secret is None:
            logger.debug("No persistent storage key, using an ephemeral key")
            return ValueCipher.ephemeral()
        return ValueCipher(secret)

    def _get_cipher(self) -> ValueCipher:
        if self._cipher is None:
            logger.warning("Encryption used before initialize(); using an ephemeral key")
            self._cipher = ValueCipher.ephemeral()
        return self._cipher

    async def _check_version(self) -> None:
        stored = await self.get(StorageKeys.APP_VERSION)
        if stored is None:
            await self.set(StorageKeys.APP_VERSION, self.app_version)
            return
        if stored == self.app_version:
            return

        logger.info(f"Stored version {stored} differs from {self.app_version}; migrating")
        self.last_migration = await self.migrator.migrate(self, str(stored), self.app_version)
        if self.last_migration.succeeded:
            await self.set(StorageKeys.APP_VERSION, self.app_version)
        else:
            logger.warning(f"Keeping stored version {stored} after failed migration")

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        encrypt: bool = False,
        compress: bool | None = None,
    ) -> bool:
        """Serialize, wrap and store a value.

        Args:
            key: Storage key
            value: JSON-serializable value
            encrypt: Encrypt the payload
            compress: Compress large payloads (None = configured default)

        Returns:
            True if stored, False on any failure
        """
        try:
            payload = serialize_value(value)
            payload, compressed = maybe_compress(
                payload,
                self.config.compression_enabled if compress is None else compress,
                self.config.compression_threshold,
            )
            if encrypt:
                payload = self._get_cipher().encrypt(payload)

            envelope = EnvelopedRecord(
                value=payload,
                timestamp=self.clock.millis(),
                version=self.app_version,
                encrypted=encrypt,
                compressed=compressed,
            )
            await self.store.set_item(key, envelope.to_json())
        except StoreQuotaExceededError as e:
            await self._report_error("set", key, e)
            await self.handle_quota_exceeded()
            return False
        except (StorageError, TypeError, ValueError) as e:
            await self._report_error("set", key, e)
            return False

        self._writes += 1
        logger.debug(f"Stored {key} (compressed={compressed}, encrypted={encrypt})")
        return True

    async def get(self, key: str, expect_encrypted: bool = False) -> Any:
        """Read and unwrap a value.

        Enveloped values are decrypted (only when ``expect_encrypted``),
        decompressed and deserialized. Legacy JSON values are returned as
        parsed; non-JSON strings are returned as-is.

        Returns:
            The value, or None when absent or unreadable
        """
        try:
            raw = await self.store.get_item(key)
        except StorageError as e:
            await self._report_error("get", key, e)
            return None

        self._reads += 1
        if raw is None:
            return None

        record = parse_record(raw)
        if isinstance(record, RawRecord):
            return record.text
        if isinstance(record, LegacyRecord):
            return record.value
        return await self._open_envelope(key, record, expect_encrypted)

    async def _open_envelope(
        self,
        key: str,
        record: EnvelopedRecord,
        expect_encrypted: bool,
    ) -> Any:
        payload = record.value
        if not isinstance(payload, str):
            return payload

        if record.encrypted and not expect_encrypted:
            logger.warning(f"Value for {key} is encrypted but was read as plain")
            return None

        try:
            if record.encrypted:
                payload = self._get_cipher().decrypt(payload)
            if record.compressed:
                payload = decompress_text(payload)
            if not record.encrypted and not record.compressed:
                try:
                    return deserialize_value(payload)
                except CodecError:
                    return payload
            return deserialize_value(payload)
        except CodecError as e:
            await self._report_error("get", key, e)
            return None

    async def remove(self, key: str) -> bool:
        """Delete a key. Returns False on failure."""
        try:
            await self.store.remove_item(key)
        except StorageError as e:
            await self._report_error("remove", key, e)
            return False
        self._writes += 1
        return True

    async def clear(self, keep_preferences: bool = True) -> bool:
        """Remove every application key.

        Args:
            keep_preferences: Restore theme, language, notification flag and
                remembered email afterwards
        """
        preserved: dict[str, Any] = {}
        if keep_preferences:
            for key in PRESERVED_KEYS:
                value = await self.get(key)
                if value is not None:
                    preserved[key] = value

        try:
            for key in StorageKeys.all():
                await self.store.remove_item(key)
        except StorageError as e:
            await self._report_error("clear", None, e)
            return False

        for key, value in preserved.items():
            await self.set(key, value)

        logger.info(f"Storage cleared (preferences kept: {sorted(preserved)})")
        return True

    # ------------------------------------------------------------------
    # Quota and inspection
    # ------------------------------------------------------------------

    async def handle_quota_exceeded(self) -> list[str]:
        """Free space after the store refused a write.

        Always drops the analytics cache; other cache-like keys are dropped
        when their envelope is older than 90 days.

        Returns:
            Keys that were removed
        """
        logger.warning("Storage quota exceeded, attempting cleanup")
        cutoff = self.clock.millis() - QUOTA_EVICTION_AGE_MS
        removed = []

        for key in EVICTABLE_KEYS:
            if key != StorageKeys.ANALYTICS_CACHE:
                timestamp = await self.get_item_timestamp(key)
                if timestamp is None or timestamp >= cutoff:
                    continue
            try:
                if await self.store.get_item(key) is None:
                    continue
                await self.store.remove_item(key)
                removed.append(key)
            except StorageError as e:
                await self._report_error("quota_cleanup", key, e)

        logger.info(f"Quota cleanup removed {len(removed)} keys: {removed}")
        return removed

    async def get_item_timestamp(self, key: str) -> int | None:
        """Envelope timestamp (epoch millis) of a key, None if unknown."""
        try:
            raw = await self.store.get_item(key)
        except StorageError as e:
            await self._report_error("get_timestamp", key, e)
            return None
        if raw is None:
            return None
        record = parse_record(raw)
        if isinstance(record, EnvelopedRecord) and isinstance(record.timestamp, int):
            return record.timestamp
        return None

    async def get_storage_info(self) -> dict[str, Any]:
        """Usage summary of the store and of each application key."""
        quota = self.store.quota_bytes or self.config.quota_bytes
        try:
            used = await self.store.used_bytes()
            items: dict[str, dict[str, Any]] = {}
            app_usage = 0
            for key in StorageKeys.all():
                raw = await self.store.get_item(key)
                if raw is None:
                    continue
                size = item_size(key, raw)
                app_usage += size
                record = parse_record(raw)
                timestamp = record.timestamp if isinstance(record, EnvelopedRecord) else None
                items[key] = {"size": size, "lastModified": timestamp}
        except StorageError as e:
            await self._report_error("storage_info", None, e)
            return {"persistent": self.store.persistent, "degraded": self.degraded, "error": str(e)}

        return {
            "persistent": self.store.persistent,
            "degraded": self.degraded,
            "totalQuota": quota,
            "usedSpace": used,
            "availableSpace": max(quota - used, 0),
            "journifyUsage": app_usage,
            "itemCount": len(items),
            "items": items,
        }

    def stats(self) -> dict[str, int]:
        """Counters of store reads, writes and reported errors."""
        return {"reads": self._reads, "writes": self._writes, "errors": self._errors}

    @property
    def read_count(self) -> int:
        return self._reads

    # ------------------------------------------------------------------
    # Key-level backup
    # ------------------------------------------------------------------

    async def export_data(self) -> dict[str, Any]:
        """Plain values of every readable, non-sensitive key, by key name."""
        data: dict[str, Any] = {}
        for name, key in StorageKeys.by_name().items():
            if key in SENSITIVE_KEYS:
                continue
            value = await self.get(key)
            if value is not None:
                data[name] = value

        return {
            "version": self.app_version,
            "exportDate": isoformat_z(self.clock.now()),
            "data": data,
        }

    async def import_data(self, bundle: Any) -> bool:
        """Restore values produced by ``export_data``.

        Unknown and sensitive key names are ignored. Returns False for a
        malformed bundle or a failed write.
        """
        if not isinstance(bundle, dict) or not isinstance(bundle.get("data"), dict):
            await self._report_error("import", None, ValueError("Invalid import data format"))
            return False

        version = bundle.get("version")
        if version and version != self.app_version:
            logger.warning(f"Importing data from version {version} into {self.app_version}")

        keys_by_name = StorageKeys.by_name()
        ok = True
        for name, value in bundle["data"].items():
            key = keys_by_name.get(name)
            if key is None or key in SENSITIVE_KEYS:
                continue
            ok = await self.set(key, value) and ok
        return ok

    # ------------------------------------------------------------------
    # Errors and change notifications
    # ------------------------------------------------------------------

    async def _report_error(self, operation: str, key: str | None, error: Exception) -> None:
        self._errors += 1
        logger.error(f"Storage {operation} failed for {key}: {error}")
        await self.events.storage_error.publish(StorageFailure(operation, key, str(error)))

    async def _on_store_change(self, change: StoreChange) -> None:
        if not StorageKeys.is_app_key(change.key):
            return
        logger.debug(f"External change to {change.key}")
        await self.events.storage_changed.publish(
            StorageChanged(change.key, change.old_value, change.new_value)
        )

    async def close(self) -> None:
        self.store.remove_change_listener(self._on_store_change)
        await self.store.close()
