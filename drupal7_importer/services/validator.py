"""Repairs embedded image URLs in posts that were already imported."""

import logging
from typing import Iterable, Optional

from ..models.record import EntityRecord, MigrationResult, RecordStatus
from .content_images import ContentImageRewriter

logger = logging.getLogger(__name__)

FILE_PATH_META_KEY = "_drupal_file_path"


class PostContentValidator:
    """
    Points ``<img src>`` values at the migrated attachments.

    Each first-party image found in a post is traced back to the Drupal
    file path it was served from, then to the attachment imported from
    that file. The post is only written when at least one ``src``
    changed.
    """

    def __init__(self, store, sink, path_prefixes: Iterable[str]):
        """
        Initialize the validator.

        Args:
            store: WordPressStore used for attachment lookups
            sink: PostSink used to save rewritten posts
            path_prefixes: URL path prefixes of Drupal's public files directory
        """
        self.store = store
        self.sink = sink
        self.rewriter = ContentImageRewriter(self.attachment_url_for, path_prefixes)

    def attachment_url_for(self, file_path: str) -> Optional[str]:
        """URL of the attachment imported from ``file_path``, if any."""
        attachment_id = self.store.find_post_id_by_meta(FILE_PATH_META_KEY, file_path)
        if not attachment_id:
            return None
        return self.store.attachment_url(attachment_id)

    def validate(self, record: EntityRecord) -> MigrationResult:
        images = record.relations.get("body_content_images") or []
        if not images:
            return MigrationResult(record_id=record.target_id, target_id=record.target_id, success=True, changed=False)

        result = self.rewriter.rewrite(record.fields.get("post_content", ""), images)
        if not result.changed:
            return MigrationResult(record_id=record.target_id, target_id=record.target_id, success=True, changed=False)

        record.fields["post_content"] = result.content
        outcome = self.sink.update(record)
        if outcome.success:
            record.status = RecordStatus.LOADED
            logger.debug(f"Rewrote {len(result.replacements)} images in post {record.target_id}")
        else:
            record.status = RecordStatus.FAILED
        return outcome
