"""
Storage migrations.

Version-keyed migration hooks and the legacy entry-list conversion.
"""

from .migrator import StorageMigrator, migrate_legacy_entries, parse_version
from .types import MigrationBatch, MigrationHook, MigrationResult, MigrationStatus

__all__ = [
    "MigrationBatch",
    "MigrationHook",
    "MigrationResult",
    "MigrationStatus",
    "StorageMigrator",
    "migrate_legacy_entries",
    "parse_version",
]
