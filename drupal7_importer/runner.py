"""Batch runner - pages through a row source and hands each item to a sink."""

import logging
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Dict, Optional

from .exceptions import ItemParseSkip, MigrationError
from .extractors.base import BaseRowSource, Row
from .loaders.base import BaseSink
from .models.migration import EntityKind, JobState, JobSummary, MigrationJob, RunMode
from .models.record import EntityRecord, MigrationResult
from .services.job_context import ImportContext
from .services.parser import BaseItemParser
from .services.progress import ProgressReporter
from .services.registry import ExtensionPoint, TransformRegistry
from .services.validator import PostContentValidator

logger = logging.getLogger(__name__)

ITEM_POINTS: Dict[EntityKind, str] = {
    EntityKind.POST: ExtensionPoint.POST_ITEM,
    EntityKind.IMAGE: ExtensionPoint.IMAGE_ITEM,
    EntityKind.USER: ExtensionPoint.USER_ITEM,
}

LABELS: Dict[EntityKind, str] = {
    EntityKind.POST: "posts",
    EntityKind.IMAGE: "images",
    EntityKind.USER: "users",
}


class BatchRunner:
    """
    Runs one job: ``INIT -> COUNTING -> PAGING -> DONE``.

    In import mode the whole run happens inside an ``ImportContext``, so
    WordPress bookkeeping is deferred until the run ends, whichever way
    it ends. A failing item is logged and counted, then the run moves on;
    a failing source query ends the run in ``FAILED``. Cancellation is
    honoured between pages.
    """

    def __init__(
        self,
        job: MigrationJob,
        source: BaseRowSource,
        parser: BaseItemParser,
        registry: TransformRegistry,
        sink: Optional[BaseSink] = None,
        validator: Optional[PostContentValidator] = None,
        store=None,
        progress: Optional[ProgressReporter] = None,
        skip_existing: bool = True
    ):
        """
        Initialize the runner.

        Args:
            job: Job to run
            source: Row source for the job's kind
            parser: Item parser for the job's kind
            registry: Transform registry with the item transforms
            sink: Sink for import mode
            validator: Posts validator for validate mode
            store: WordPressStore whose toggles and cache the run manages
            progress: Progress reporter, ticked once per successful item
            skip_existing: Skip items imported by an earlier run
        """
        if job.mode == RunMode.IMPORT and sink is None:
            raise ValueError("Import jobs need a sink")
        if job.mode == RunMode.VALIDATE and validator is None:
            raise ValueError("Validate jobs need a validator")

        self.job = job
        self.source = source
        self.parser = parser
        self.registry = registry
        self.sink = sink
        self.validator = validator
        self.store = store
        self.progress = progress or ProgressReporter()
        self.skip_existing = skip_existing

        self.state = JobState.INIT
        self.offset = job.offset
        self.summary = JobSummary(kind=job.kind.value, mode=job.mode.value)

    @property
    def item_point(self) -> str:
        if self.job.mode == RunMode.VALIDATE:
            return ExtensionPoint.VALIDATOR_ITEM
        return ITEM_POINTS[self.job.kind]

    @property
    def label(self) -> str:
        return LABELS[self.job.kind]

    def _set_state(self, state: JobState) -> None:
        logger.debug(f"Job {self.job.id}: {self.state.value} -> {state.value}")
        self.state = state
        self.summary.state = state

    def run(self) -> JobSummary:
        """
        Run the job to completion, cancellation or failure.

        Returns:
            JobSummary with counts and errors

        Raises:
            SourceQueryError: If counting or fetching a page fails
            SinkWriteError: If deferred bookkeeping cannot be written back
        """
        self.summary.started_at = datetime.utcnow()
        context = ImportContext(self.store) if self.job.mode == RunMode.IMPORT and self.store else nullcontext()

        try:
            with context:
                if self.count() == 0:
                    logger.warning(f"No {self.label} found; nothing to {self.job.mode.value}")
                    self._set_state(JobState.DONE)
                    return self.summary
                self.process_pages()
        except MigrationError as e:
            self._set_state(JobState.FAILED)
            self.summary.errors.append({"error": str(e), "offset": self.offset})
            logger.error(f"Aborting {self.label} {self.job.mode.value}: {e}")
            raise
        finally:
            self.summary.completed_at = datetime.utcnow()
            self.progress.finish()

        return self.summary

    def count(self) -> int:
        self._set_state(JobState.COUNTING)
        total = self.job.resolve_total(self.source.count)
        self.summary.total_count = total
        logger.info(f"Found {total} {self.label} to {self.job.mode.value}")
        return total

    def process_pages(self) -> None:
        """Fetch and process pages until the planned total is reached."""
        self._set_state(JobState.PAGING)
        end = self.job.planned_total
        page_size = self.job.effective_page_size
        self.progress.start(max(end - self.offset, 0), self.label)

        while self.offset < end:
            if self.job.cancelled:
                logger.warning(f"Cancelled at offset {self.offset}")
                self._set_state(JobState.CANCELLED)
                return

            size = min(page_size, end - self.offset)
            rows = self.source.fetch_page(self.job, self.offset, size)
            self.summary.pages_fetched += 1
            # Results hooks may drop rows; paging follows what the query returned.
            fetched = self.source.last_fetched
            if not fetched:
                break

            for row in rows:
                self.process_row(row)
            self.offset += fetched
            logger.info(
                f"Processed {self.offset}/{end} {self.label} "
                f"({self.summary.records_failed} failed, {self.summary.records_skipped} skipped)"
            )

        self._set_state(JobState.DONE)

    def process_row(self, row: Row) -> Optional[MigrationResult]:
        """Parse, transform and load a single row."""
        self.summary.records_processed += 1
        try:
            record = self.parser.parse(row)
        except ItemParseSkip as e:
            self.summary.records_skipped += 1
            logger.debug(f"Skipped row: {e}")
            return None

        try:
            record = self.registry.apply(self.item_point, record)

            if self.job.mode == RunMode.IMPORT and self.skip_existing:
                existing = self.sink.exists(record)
                if existing:
                    self.summary.records_existing += 1
                    logger.debug(f"Already imported as {existing}: {self.sink.record_id(record)}")
                    return None

            if self.job.mode == RunMode.VALIDATE:
                result = self.validator.validate(record)
            else:
                result = self.sink.insert(record)

            if result.success:
                self.summary.records_succeeded += 1
                if self.job.mode == RunMode.VALIDATE and result.changed:
                    self.summary.records_updated += 1
                self.progress.tick(1)
            else:
                self._record_failure(record, result.error, BaseSink.failure_payload(record, result))
            return result

        except Exception as e:
            self._record_failure(record, str(e), {"error": str(e), "item": record.to_dict()})
            return None

        finally:
            if self.store is not None:
                self.store.clear_local_object_cache()

    def _record_failure(self, record: EntityRecord, error: Optional[str], payload: Dict[str, Any]) -> None:
        self.summary.records_failed += 1
        self.summary.errors.append(payload)
        logger.error(f"Failed to {self.job.mode.value} {self.job.kind.value}: {error}. item: {record.to_dict()}")
