"""Base row source interface."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Executable

from ..exceptions import SourceQueryError
from ..models.migration import MigrationJob, resolve_page_size
from ..services.registry import TransformRegistry

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class BaseRowSource(ABC):
    """
    Base class for paginated row sources.

    A row source counts and pages through the rows one entity kind needs.
    ``count`` and ``fetch_page`` must apply the same predicates so that
    paging from 0 to ``count`` visits every matching row exactly once.
    """

    # Extension points for the predicate list and the fetched pages.
    where_point: str = ""
    results_point: str = ""

    def __init__(self, engine: Engine, registry: Optional[TransformRegistry] = None):
        """
        Initialize the source.

        Args:
            engine: Engine connected to the database being read
            registry: Registry holding predicate/result hooks
        """
        self.engine = engine
        self.registry = registry or TransformRegistry()
        # Rows the last page query returned, before the results hooks ran.
        self.last_fetched = 0

    @abstractmethod
    def base_predicates(self, job: MigrationJob) -> List[Any]:
        """Predicates every query of this source applies."""
        pass

    @abstractmethod
    def build_count_query(self, predicates: List[Any]) -> Executable:
        pass

    @abstractmethod
    def fetch_rows(self, predicates: List[Any], offset: int, limit: int, job: MigrationJob) -> List[Row]:
        """Fetch one page of raw rows, ordered by the origin primary id."""
        pass

    def predicates(self, job: MigrationJob) -> List[Any]:
        """Base predicates after the registered hooks have had their say."""
        predicates = list(self.base_predicates(job))
        return list(self.registry.apply(self.where_point, predicates, job))

    def count(self, job: MigrationJob) -> int:
        """
        Total number of rows matching the job's criteria.

        Raises:
            SourceQueryError: If the query fails
        """
        query = self.build_count_query(self.predicates(job))
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(query).scalar() or 0)
        except SQLAlchemyError as e:
            raise SourceQueryError(f"Count query failed: {e}", query=str(query)) from e

    def fetch_page(self, job: MigrationJob, offset: int, limit: int) -> List[Row]:
        """
        Fetch up to ``limit`` rows starting at ``offset``.

        Args:
            job: The job being run
            offset: Number of rows to skip
            limit: Page size; ``-1`` means the default page size

        Raises:
            SourceQueryError: If the query fails
        """
        limit = resolve_page_size(limit)
        self.last_fetched = 0
        try:
            rows = self.fetch_rows(self.predicates(job), int(offset), limit, job)
        except SQLAlchemyError as e:
            raise SourceQueryError(f"Page query failed at offset {offset}: {e}") from e

        self.last_fetched = len(rows)
        logger.debug(f"Fetched {len(rows)} rows at offset {offset}")
        return list(self.registry.apply(self.results_point, rows, job))

    def stream(self, job: MigrationJob, batch_size: Optional[int] = None) -> Iterator[List[Row]]:
        """
        Stream rows in batches until the source is exhausted.

        Args:
            job: The job being run
            batch_size: Size of each batch (defaults to the job's page size)

        Yields:
            Pages of raw rows
        """
        batch_size = resolve_page_size(batch_size or job.page_size)
        offset = job.offset

        while True:
            batch = self.fetch_page(job, offset, batch_size)
            fetched = self.last_fetched
            if not fetched:
                break

            if batch:
                yield batch
            offset += fetched

            if fetched < batch_size:
                break
