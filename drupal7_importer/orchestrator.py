"""Migration orchestrator - wires sources, parsers, transforms and sinks into runnable jobs."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from sqlalchemy.engine import Engine

from .db import create_db_engine
from .extractors.base import BaseRowSource
from .extractors.images import DrupalFileSource
from .extractors.posts import DrupalNodeSource
from .extractors.users import DrupalUserSource
from .extractors.wordpress import WordPressPostSource
from .loaders.base import BaseSink
from .loaders.media import MediaFetcher
from .loaders.store import WordPressStore
from .loaders.wordpress import AttachmentSink, PostSink, UserSink
from .models.config import ImporterConfig
from .models.migration import ALL_ENTITY_TYPES, EntityKind, JobState, JobSummary, MigrationJob, RunMode
from .runner import BatchRunner
from .services.lookup import AuthorLookupCache
from .services.parser import BaseItemParser, ImageParser, PostContentParser, PostParser, UserParser
from .services.progress import LoggingProgress, ProgressReporter
from .services.registry import TransformRegistry
from .services.transforms import register_default_transforms
from .services.validator import PostContentValidator

logger = logging.getLogger(__name__)

# Users first so post authors resolve, images before posts so the
# validator finds attachments.
IMPORT_ORDER = [EntityKind.USER, EntityKind.IMAGE, EntityKind.POST]

Extension = Callable[[TransformRegistry, MigrationJob], None]


class MigrationOrchestrator:
    """
    Builds and runs migration jobs.

    Handles:
    - Engine and store setup from configuration
    - Picking the source, parser and sink for a job
    - Registering the built-in transforms plus any extensions
    - Running the job and saving its report
    """

    def __init__(
        self,
        config: ImporterConfig,
        wordpress_engine: Optional[Engine] = None,
        drupal_engine: Optional[Engine] = None,
        extensions: Optional[List[Extension]] = None,
        progress_factory: Optional[Callable[[], ProgressReporter]] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Importer configuration
            wordpress_engine: Engine for the WordPress database (built from config if omitted)
            drupal_engine: Engine for the Drupal database (built from config if omitted)
            extensions: Callables registering extra transforms on each job's registry
            progress_factory: Builds the progress reporter for each job
        """
        self.config = config
        self._wordpress_engine = wordpress_engine
        self._drupal_engine = drupal_engine
        self.extensions = list(extensions or [])
        self.progress_factory = progress_factory or LoggingProgress
        self._store: Optional[WordPressStore] = None
        self.current_job: Optional[MigrationJob] = None

    @property
    def wordpress_engine(self) -> Engine:
        if self._wordpress_engine is None:
            self._wordpress_engine = create_db_engine(self.config.wordpress_db)
        return self._wordpress_engine

    @property
    def drupal_engine(self) -> Engine:
        if self._drupal_engine is None:
            self._drupal_engine = create_db_engine(self.config.resolved_drupal_db())
        return self._drupal_engine

    @property
    def store(self) -> WordPressStore:
        if self._store is None:
            self._store = WordPressStore(
                self.wordpress_engine,
                table_prefix=self.config.table_prefix,
                uploads_url=self.config.uploads_url,
                site_url=self.config.site_url,
            )
        return self._store

    def create_job(
        self,
        kind: EntityKind,
        mode: RunMode = RunMode.IMPORT,
        page_size: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        entity_type: str = ALL_ENTITY_TYPES
    ) -> MigrationJob:
        """
        Create a job with its own author cache where it needs one.

        Args:
            kind: Entity kind to migrate
            mode: Import or validate
            page_size: Items per page (``-1`` for the default)
            offset: Rows to skip
            limit: Maximum number of rows to visit
            entity_type: Comma-separated Drupal node types, or ``all``

        Returns:
            MigrationJob
        """
        job = MigrationJob(
            kind=kind,
            mode=mode,
            page_size=self.config.per_page if page_size is None else page_size,
            offset=offset,
            limit=limit,
            args={"entity_type": entity_type or ALL_ENTITY_TYPES},
        )
        if kind == EntityKind.POST and mode == RunMode.IMPORT:
            job.author_cache = AuthorLookupCache(self.store.user_id_map)
        return job

    def create_registry(self, job: MigrationJob) -> TransformRegistry:
        registry = TransformRegistry()
        register_default_transforms(
            registry,
            job,
            role_mapping=self.config.role_mapping,
            default_role=self.config.default_role,
        )
        for extension in self.extensions:
            extension(registry, job)
        return registry

    def create_runner(self, job: MigrationJob) -> BatchRunner:
        """Assemble the runner for a job."""
        registry = self.create_registry(job)
        runner_kwargs = {}
        if job.mode == RunMode.VALIDATE:
            runner_kwargs["validator"] = PostContentValidator(
                self.store,
                PostSink(self.store),
                self.config.origin_path_prefixes,
            )
        else:
            runner_kwargs["sink"] = self._create_sink(job)

        return BatchRunner(
            job=job,
            source=self._create_source(job, registry),
            parser=self._create_parser(job),
            registry=registry,
            store=self.store,
            progress=self.progress_factory(),
            skip_existing=self.config.skip_existing,
            **runner_kwargs,
        )

    def _create_source(self, job: MigrationJob, registry: TransformRegistry) -> BaseRowSource:
        """Create the row source for a job."""
        if job.mode == RunMode.VALIDATE:
            if job.kind != EntityKind.POST:
                raise ValueError(f"Nothing to validate for {job.kind.value}")
            return WordPressPostSource(self.wordpress_engine, self.store.tables, registry)
        if job.kind == EntityKind.POST:
            return DrupalNodeSource(self.drupal_engine, registry)
        elif job.kind == EntityKind.IMAGE:
            return DrupalFileSource(self.drupal_engine, registry)
        elif job.kind == EntityKind.USER:
            return DrupalUserSource(self.drupal_engine, registry)
        raise ValueError(f"Unsupported entity kind: {job.kind}")

    def _create_parser(self, job: MigrationJob) -> BaseItemParser:
        """Create the item parser for a job."""
        if job.mode == RunMode.VALIDATE:
            return PostContentParser(self.config.first_party_host)
        if job.kind == EntityKind.POST:
            return PostParser()
        elif job.kind == EntityKind.IMAGE:
            return ImageParser()
        return UserParser(anonymize_emails=self.config.anonymize_emails)

    def _create_sink(self, job: MigrationJob) -> BaseSink:
        """Create the sink for a job."""
        if job.kind == EntityKind.POST:
            return PostSink(self.store)
        elif job.kind == EntityKind.IMAGE:
            fetcher = MediaFetcher(
                self.config.resolved_import_path,
                origin_files_url=self.config.origin_files_url,
                timeout=self.config.download_timeout,
            )
            return AttachmentSink(self.store, fetcher, Path(self.config.uploads_path))
        return UserSink(self.store, default_role=self.config.default_role)

    def run(self, job: MigrationJob, report_dir: Optional[str] = None) -> JobSummary:
        """
        Run a single job.

        Args:
            job: Job to run
            report_dir: Directory to write the JSON run report to

        Returns:
            JobSummary for the job
        """
        runner = self.create_runner(job)
        self.current_job = job
        logger.info(f"=== {job.mode.value.upper()} {runner.label.upper()} ===")
        try:
            summary = runner.run()
        finally:
            self.current_job = None
            if runner.sink is not None:
                runner.sink.close()
            if report_dir:
                self._save_report(runner.summary, report_dir)

        logger.info(
            f"{runner.label}: {summary.records_succeeded}/{summary.total_count} succeeded, "
            f"{summary.records_failed} failed, {summary.records_skipped} skipped, "
            f"{summary.records_existing} already imported"
        )
        return summary

    def run_all(self, report_dir: Optional[str] = None, **job_args) -> List[JobSummary]:
        """
        Import users, images and posts, in that order.

        Stops early when a job is cancelled.
        """
        summaries = []
        for kind in IMPORT_ORDER:
            summary = self.run(self.create_job(kind, RunMode.IMPORT, **job_args), report_dir)
            summaries.append(summary)
            if summary.state == JobState.CANCELLED:
                break
        return summaries

    def cancel(self) -> None:
        """Cancel the running job, if any, before its next page."""
        if self.current_job is not None:
            self.current_job.cancel()

    def _save_report(self, summary: JobSummary, report_dir: str) -> Path:
        """Save the run report."""
        directory = Path(report_dir)
        directory.mkdir(parents=True, exist_ok=True)
        filepath = directory / (
            f"migration_report_{summary.kind}_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.json"
        )
        with open(filepath, "w") as f:
            json.dump(summary.to_dict(), f, indent=2, default=str)
        logger.info(f"Saved migration report to {filepath}")
        return filepath
