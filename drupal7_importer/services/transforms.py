"""Built-in transforms that turn Drupal records into WordPress-ready records."""

import html
import logging
import re
from functools import partial
from typing import Dict, Mapping

from ..models.migration import MigrationJob
from ..models.record import EntityRecord, RecordStatus
from .formatting import absint, to_text, to_wp_datetime
from .lookup import AuthorLookupCache
from .registry import ExtensionPoint, TransformRegistry

logger = logging.getLogger(__name__)

DECODED_FIELDS = ("post_content", "post_excerpt", "post_title")
DEFAULT_ROLE = "subscriber"

# Single-quote entities stay encoded, as with PHP's ENT_COMPAT.
_SINGLE_QUOTE_ENTITY_RE = re.compile(r"^&(?:#0*39|#[xX]0*27|apos);$")
# Only references terminated by ";"; bare "&name" in query strings is text.
_ENTITY_RE = re.compile(r"&(?:#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")


def _decode_entity(match: "re.Match") -> str:
    entity = match.group(0)
    if _SINGLE_QUOTE_ENTITY_RE.match(entity):
        return entity
    return html.unescape(entity)


def _decode_compat(text: str) -> str:
    return _ENTITY_RE.sub(_decode_entity, text)


def decode_html_entities(record: EntityRecord) -> EntityRecord:
    """Convert HTML entities to characters in the title, content and excerpt."""
    for name in DECODED_FIELDS:
        if name in record.fields:
            record.fields[name] = _decode_compat(to_text(record.fields[name]))
    return record


def format_post_date(record: EntityRecord) -> EntityRecord:
    """Convert post dates into a format WordPress can digest."""
    for name in ("post_date", "post_modified"):
        if name in record.fields:
            record.fields[name] = to_wp_datetime(record.fields[name])
    return record


def assign_post_author(record: EntityRecord, cache: AuthorLookupCache) -> EntityRecord:
    """Find the WordPress user imported from the node's Drupal owner; 0 if there is none."""
    drupal_uid = absint(record.origin.get("drupal_uid"))
    record.fields["post_author"] = cache.resolve(drupal_uid)
    return record


def transform_url_aliases(record: EntityRecord) -> EntityRecord:
    """
    Store the node's URL alias as ``drupal_url_alias``.

    Only the last alias is kept when a node has several.
    """
    for alias in record.relations.get("url_alias") or []:
        record.origin["drupal_url_alias"] = alias
    return record


def map_drupal_roles_to_wp(
    record: EntityRecord,
    roles: Mapping[int, str],
    default: str = DEFAULT_ROLE
) -> EntityRecord:
    """Map the Drupal role id to a WordPress role name, falling back to ``default``."""
    role_id = absint(record.origin.get("drupal_role_id"))
    record.fields["role"] = roles.get(role_id, default)
    return record


def mark_transformed(record: EntityRecord) -> EntityRecord:
    record.status = RecordStatus.TRANSFORMED
    return record


def register_default_transforms(
    registry: TransformRegistry,
    job: MigrationJob,
    role_mapping: Dict[int, str],
    default_role: str = DEFAULT_ROLE
) -> TransformRegistry:
    """
    Register the built-in transforms for every extension point.

    Args:
        registry: Registry to populate
        job: Job whose author cache backs ``assign_post_author``
        role_mapping: Drupal role id -> WordPress role
        default_role: Role for unmapped Drupal role ids

    Returns:
        The same registry
    """
    registry.register(ExtensionPoint.POST_ITEM, decode_html_entities)
    registry.register(ExtensionPoint.POST_ITEM, format_post_date)
    registry.register(ExtensionPoint.POST_ITEM, transform_url_aliases)
    if job.author_cache is not None:
        registry.register(
            ExtensionPoint.POST_ITEM,
            partial(assign_post_author, cache=job.author_cache),
            name="assign_post_author",
        )

    registry.register(ExtensionPoint.IMAGE_ITEM, format_post_date)

    registry.register(
        ExtensionPoint.USER_ITEM,
        partial(map_drupal_roles_to_wp, roles=dict(role_mapping), default=default_role),
        name="map_drupal_roles_to_wp",
    )

    for point in (
        ExtensionPoint.POST_ITEM,
        ExtensionPoint.IMAGE_ITEM,
        ExtensionPoint.USER_ITEM,
        ExtensionPoint.VALIDATOR_ITEM,
    ):
        registry.register(point, mark_transformed, priority=1000)

    return registry
