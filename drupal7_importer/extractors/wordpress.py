"""Row source over existing WordPress posts, used by the posts validator."""

from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from ..loaders.wp_schema import WordPressTables
from ..models.migration import MigrationJob
from ..services.registry import ExtensionPoint, TransformRegistry
from .base import BaseRowSource, Row


class WordPressPostSource(BaseRowSource):
    """Posts whose content embeds at least one ``<img`` tag."""

    where_point = ExtensionPoint.VALIDATOR_WHERE
    results_point = ExtensionPoint.VALIDATOR_RESULTS

    def __init__(
        self,
        engine: Engine,
        tables: WordPressTables,
        registry: Optional[TransformRegistry] = None
    ):
        super().__init__(engine, registry)
        self.tables = tables

    def base_predicates(self, job: MigrationJob) -> List[Any]:
        return [self.tables.posts.c.post_content.contains("<img", autoescape=True)]

    def build_count_query(self, predicates: List[Any]):
        return select(func.count()).select_from(self.tables.posts).where(*predicates)

    def fetch_rows(self, predicates: List[Any], offset: int, limit: int, job: MigrationJob) -> List[Row]:
        posts = self.tables.posts
        query = (
            select(posts.c.ID, posts.c.post_title, posts.c.post_type, posts.c.post_content)
            .where(*predicates)
            .order_by(posts.c.ID)
            .offset(offset)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(query)]
