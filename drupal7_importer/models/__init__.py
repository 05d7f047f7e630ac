"""Data models for the importer."""

from .record import (
    ORIGIN_PREFIX,
    EntityRecord,
    MigrationResult,
    RecordStatus,
)
from .migration import (
    ALL_ENTITY_TYPES,
    DEFAULT_PAGE_SIZE,
    UNBOUNDED_PAGE_SIZE,
    EntityKind,
    JobState,
    JobSummary,
    MigrationJob,
    RunMode,
)
from .config import (
    DatabaseConfig,
    ImporterConfig,
)

__all__ = [
    "ORIGIN_PREFIX",
    "EntityRecord",
    "MigrationResult",
    "RecordStatus",
    "ALL_ENTITY_TYPES",
    "DEFAULT_PAGE_SIZE",
    "UNBOUNDED_PAGE_SIZE",
    "EntityKind",
    "JobState",
    "JobSummary",
    "MigrationJob",
    "RunMode",
    "DatabaseConfig",
    "ImporterConfig",
]
