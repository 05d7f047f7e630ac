"""Row source for Drupal 7 nodes."""

import logging
from collections import defaultdict
from typing import Any, Dict, List

from sqlalchemy import and_, case, func, select

from ..models.migration import MigrationJob
from ..services.registry import ExtensionPoint
from .base import BaseRowSource, Row
from .drupal_schema import field_data_body, node, url_alias

logger = logging.getLogger(__name__)


class DrupalNodeSource(BaseRowSource):
    """
    Reads published Drupal nodes with a body.

    Nodes without a ``field_data_body`` row have no equivalent of a
    post_content or post_excerpt and are excluded. Each page is fetched
    as ids first, then hydrated, then URL aliases are attached.
    """

    where_point = ExtensionPoint.POST_WHERE
    results_point = ExtensionPoint.POST_RESULTS

    def _joined(self):
        return node.join(
            field_data_body,
            and_(
                node.c.nid == field_data_body.c.entity_id,
                field_data_body.c.entity_type == "node",
            ),
        )

    def base_predicates(self, job: MigrationJob) -> List[Any]:
        predicates: List[Any] = [node.c.status == 1]
        entity_types = job.entity_types
        if entity_types:
            predicates.append(node.c.type.in_(entity_types))
        return predicates

    def build_count_query(self, predicates: List[Any]):
        return select(func.count()).select_from(self._joined()).where(*predicates)

    def fetch_rows(self, predicates: List[Any], offset: int, limit: int, job: MigrationJob) -> List[Row]:
        node_ids = self.get_node_ids(predicates, offset, limit)
        entities = self.get_hydrated_entities(node_ids)
        return self.get_entities_urls(entities)

    def get_node_ids(self, predicates: List[Any], offset: int, limit: int) -> List[int]:
        """Node ids of one page, in nid order."""
        query = (
            select(node.c.nid)
            .select_from(self._joined())
            .where(*predicates)
            .order_by(node.c.nid)
            .offset(offset)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [row[0] for row in conn.execute(query)]

    def get_hydrated_entities(self, node_ids: List[int]) -> List[Row]:
        """
        Hydrate node ids into rows named after their WordPress counterparts.
        """
        if not node_ids:
            return []

        query = (
            select(
                node.c.changed.label("post_modified"),
                case((node.c.comment == 2, "open"), else_="closed").label("comment_status"),
                node.c.created.label("post_date"),
                node.c.nid.label("drupal_nid"),
                node.c.sticky.label("drupal_sticky"),
                node.c.title.label("post_title"),
                node.c.type.label("post_type"),
                node.c.uid.label("drupal_uid"),
                field_data_body.c.body_value.label("post_content"),
                field_data_body.c.body_summary.label("post_excerpt"),
            )
            .select_from(self._joined())
            .where(node.c.nid.in_(node_ids))
            .order_by(node.c.nid)
        )
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(query)]

    def get_entities_urls(self, entities: List[Row]) -> List[Row]:
        """Attach each node's URL aliases (oldest first) under ``url_alias``."""
        if not entities:
            return entities

        sources = [f"node/{entity['drupal_nid']}" for entity in entities]
        query = (
            select(url_alias.c.source, url_alias.c.alias)
            .where(url_alias.c.source.in_(sources))
            .order_by(url_alias.c.pid)
        )
        aliases: Dict[str, List[str]] = defaultdict(list)
        with self.engine.connect() as conn:
            for source, alias in conn.execute(query):
                aliases[source].append(alias)

        for entity in entities:
            entity["url_alias"] = aliases.get(f"node/{entity['drupal_nid']}", [])
        return entities
