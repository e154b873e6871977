"""
Migration types and data structures.

Describes the outcome of storage-format migrations run when the stored
application version differs from the running one.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..storage.service import StorageService

MigrationHook = Callable[["StorageService"], Awaitable[None]]


class MigrationStatus(Enum):
    """Status of a migration step."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class MigrationResult:
    """Result of running one migration step.

    ``target_version`` is the version the step migrates storage to, or the
    name of a named data migration.
    """

    target_version: str
    status: MigrationStatus
    items_migrated: int = 0

    # Timing
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # Error info (if failed)
    error_message: str | None = None
    error_details: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate migration duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "target_version": self.target_version,
            "status": self.status.value,
            "items_migrated": self.items_migrated,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
            "error_details": self.error_details,
        }


@dataclass
class MigrationBatch:
    """Results of a version-to-version migration run."""

    from_version: str | None
    to_version: str
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[MigrationResult] = field(default_factory=list)

    # Timing
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.failed == 0

    def add_result(self, result: MigrationResult) -> None:
        """Add a step result to the batch."""
        self.results.append(result)
        if result.status == MigrationStatus.COMPLETED:
            self.completed += 1
        elif result.status == MigrationStatus.FAILED:
            self.failed += 1
        elif result.status == MigrationStatus.SKIPPED:
            self.skipped += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_version": self.from_version,
            "to_version": self.to_version,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "results": [r.to_dict() for r in self.results],
        }
