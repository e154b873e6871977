"""
Storage layer.

Key-value stores (memory, file), the envelope codec, key names and the
storage service built on top of them.
"""

from .base import KeyValueStore, StoreChange
from .codec import EnvelopedRecord, LegacyRecord, ParsedRecord, RawRecord, parse_record
from .crypto import ValueCipher
from .file import FileStore
from .keys import EVICTABLE_KEYS, PRESERVED_KEYS, SENSITIVE_KEYS, StorageKeys
from .memory import MemoryStore, SharedMemoryArea
from .service import StorageService

__all__ = [
    "EVICTABLE_KEYS",
    "EnvelopedRecord",
    "FileStore",
    "KeyValueStore",
    "LegacyRecord",
    "MemoryStore",
    "PRESERVED_KEYS",
    "ParsedRecord",
    "RawRecord",
    "SENSITIVE_KEYS",
    "SharedMemoryArea",
    "StorageKeys",
    "StorageService",
    "StoreChange",
    "ValueCipher",
    "parse_record",
]
