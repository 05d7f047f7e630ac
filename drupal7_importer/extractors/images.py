"""Row source for Drupal 7 managed files."""

from typing import Any, List

from sqlalchemy import func, select

from ..models.migration import MigrationJob
from ..services.registry import ExtensionPoint
from .base import BaseRowSource, Row
from .drupal_schema import file_managed


class DrupalFileSource(BaseRowSource):
    """Reads permanent files from ``file_managed``."""

    where_point = ExtensionPoint.IMAGE_WHERE
    results_point = ExtensionPoint.IMAGE_RESULTS

    def columns(self, job: MigrationJob) -> List[Any]:
        """Selected columns, open to the ``image.columns`` hook."""
        fm = file_managed.c
        columns = [
            fm.fid.label("drupal_file_id"),
            fm.uid.label("drupal_user_id"),
            fm.uri.label("drupal_file_path"),
            fm.filename.label("post_title"),
            fm.timestamp.label("post_date"),
            fm.filemime.label("post_mime_type"),
        ]
        return list(self.registry.apply(ExtensionPoint.IMAGE_COLUMNS, columns, job))

    def base_predicates(self, job: MigrationJob) -> List[Any]:
        # Temporary files (status 0) are removed by Drupal's cron.
        return [file_managed.c.status == 1]

    def build_count_query(self, predicates: List[Any]):
        return select(func.count()).select_from(file_managed).where(*predicates)

    def fetch_rows(self, predicates: List[Any], offset: int, limit: int, job: MigrationJob) -> List[Row]:
        query = (
            select(*self.columns(job))
            .select_from(file_managed)
            .where(*predicates)
            .order_by(file_managed.c.fid)
            .offset(offset)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(query)]
