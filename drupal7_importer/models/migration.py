"""Migration execution models."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from ..services.lookup import AuthorLookupCache

DEFAULT_PAGE_SIZE = 100
# Callers pass -1 to mean "whatever the pipeline's default page size is".
UNBOUNDED_PAGE_SIZE = -1
ALL_ENTITY_TYPES = "all"


class EntityKind(str, Enum):
    """Categories of records the importer knows how to migrate."""
    POST = "post"
    IMAGE = "image"
    USER = "user"


class RunMode(str, Enum):
    """How a job treats the records it visits."""
    IMPORT = "import"  # Create new WordPress records
    VALIDATE = "validate"  # Scan existing WordPress records and repair them


class JobState(str, Enum):
    """States of the batch runner."""
    INIT = "init"
    COUNTING = "counting"
    PAGING = "paging"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


def resolve_page_size(limit: int) -> int:
    """Translate the ``-1`` sentinel into the default page size."""
    limit = int(limit)
    if limit == UNBOUNDED_PAGE_SIZE or limit == 0:
        return DEFAULT_PAGE_SIZE
    if limit < 0:
        raise ValueError(f"Invalid page size: {limit}")
    return limit


def parse_entity_types(entity_type: Optional[str]) -> Optional[List[str]]:
    """
    Parse the ``entity_type`` argument.

    Returns None when no filtering should happen (``all`` or empty),
    otherwise the trimmed allow-list.
    """
    if not entity_type:
        return None
    types = [t.strip() for t in entity_type.split(",")]
    if not types[0] or types[0] == ALL_ENTITY_TYPES:
        return None
    return [t for t in types if t]


@dataclass
class MigrationJob:
    """
    One migration of one entity kind in one run mode.

    A job is built once per CLI invocation and owns everything whose
    lifetime is the job: the cached total count, the current offset, and
    the author lookup cache used by post transforms.
    """
    kind: EntityKind
    mode: RunMode = RunMode.IMPORT
    page_size: int = DEFAULT_PAGE_SIZE
    offset: int = 0
    limit: Optional[int] = None  # Maximum number of rows to visit
    args: Dict[str, Any] = field(default_factory=lambda: {"entity_type": ALL_ENTITY_TYPES})
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    author_cache: Optional["AuthorLookupCache"] = None
    _total_count: Optional[int] = field(default=None, repr=False)
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def effective_page_size(self) -> int:
        return resolve_page_size(self.page_size)

    @property
    def entity_types(self) -> Optional[List[str]]:
        return parse_entity_types(self.args.get("entity_type"))

    @property
    def total_count(self) -> Optional[int]:
        return self._total_count

    def resolve_total(self, counter: Callable[["MigrationJob"], int]) -> int:
        """
        Return the total row count, computing it at most once.

        Args:
            counter: Callable that queries the source for the count

        Returns:
            Total matching rows
        """
        if self._total_count is None:
            self._total_count = int(counter(self))
        return self._total_count

    @property
    def planned_total(self) -> int:
        """Rows this job will visit: the total capped by ``limit`` and shifted by ``offset``."""
        total = self._total_count or 0
        if self.limit is not None:
            total = min(total, self.offset + self.limit)
        return total

    def cancel(self) -> None:
        """Ask the runner to stop before the next page."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "mode": self.mode.value,
            "page_size": self.page_size,
            "offset": self.offset,
            "limit": self.limit,
            "total_count": self._total_count,
            "args": self.args,
        }


@dataclass
class JobSummary:
    """Counters and timings for a finished (or aborted) job."""
    kind: str
    mode: str
    state: JobState = JobState.INIT
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_count: int = 0
    pages_fetched: int = 0
    records_processed: int = 0
    records_succeeded: int = 0
    records_updated: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    records_existing: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind,
            "mode": self.mode,
            "state": self.state.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "total_count": self.total_count,
            "pages_fetched": self.pages_fetched,
            "records_processed": self.records_processed,
            "records_succeeded": self.records_succeeded,
            "records_updated": self.records_updated,
            "records_failed": self.records_failed,
            "records_skipped": self.records_skipped,
            "records_existing": self.records_existing,
            "errors": self.errors,
            "warnings": self.warnings,
        }
