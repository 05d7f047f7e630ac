"""Per-entity normalization of raw rows into EntityRecords."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from ..exceptions import ItemParseSkip
from ..models.migration import EntityKind
from ..models.record import EntityRecord, RecordStatus
from .content_images import find_content_images
from .formatting import absint, generate_password, sanitize_title, to_text, to_wp_datetime

logger = logging.getLogger(__name__)

DRUPAL_PUBLIC_SCHEME = "public://"


class BaseItemParser(ABC):
    """
    Base class for item parsers.

    Parsers run once per raw row, before the generic transforms. Subclasses
    declare which fields are integers, which are strings and which are
    Unix timestamps; ``normalize`` then does entity-specific work.
    """

    kind: str = ""
    int_fields: Tuple[str, ...] = ()
    text_fields: Tuple[str, ...] = ()
    date_fields: Tuple[str, ...] = ()
    relation_keys: Tuple[str, ...] = ()

    def parse(self, row: Optional[Dict[str, Any]]) -> EntityRecord:
        """
        Parse a raw row.

        Raises:
            ItemParseSkip: If the row is empty
        """
        if not row:
            raise ItemParseSkip("Empty row", row=row)

        row = dict(row)
        for name in self.text_fields:
            if name in row:
                row[name] = to_text(row[name])
        for name in self.int_fields:
            if name in row:
                row[name] = absint(row[name])
        for name in self.date_fields:
            if name in row:
                row[name] = to_wp_datetime(row[name])

        record = EntityRecord.from_row(self.kind, row, self.relation_keys)
        record = self.normalize(record)
        record.status = RecordStatus.PARSED
        return record

    @abstractmethod
    def normalize(self, record: EntityRecord) -> EntityRecord:
        """Entity-specific normalization."""
        pass


class PostParser(BaseItemParser):
    """Drupal nodes -> WordPress posts."""

    kind = EntityKind.POST.value
    # These are strings but sometimes have a null value.
    text_fields = ("post_content", "post_excerpt", "post_title", "post_type", "comment_status")
    int_fields = ("drupal_nid", "drupal_uid", "drupal_sticky")
    date_fields = ("post_date", "post_modified")
    relation_keys = ("url_alias",)

    def __init__(self, post_type: str = "post", post_status: str = "publish"):
        self.post_type = post_type
        self.post_status = post_status

    def normalize(self, record: EntityRecord) -> EntityRecord:
        if not record.origin.get("drupal_nid"):
            raise ItemParseSkip("Node without an id", row=record.to_dict())

        # Drupal bundles are kept as metadata; every node becomes a post.
        record.origin["drupal_node_type"] = record.fields.pop("post_type", "")
        record.fields["post_type"] = self.post_type
        record.fields["post_status"] = self.post_status
        record.relations.setdefault("url_alias", [])
        return record


class ImageParser(BaseItemParser):
    """Drupal managed files -> WordPress attachments."""

    kind = EntityKind.IMAGE.value
    text_fields = ("post_title", "post_mime_type", "drupal_file_path")
    int_fields = ("drupal_file_id", "drupal_user_id")
    date_fields = ("post_date",)

    def normalize(self, record: EntityRecord) -> EntityRecord:
        if not record.origin.get("drupal_file_id"):
            raise ItemParseSkip("File without an id", row=record.to_dict())

        path = record.origin.get("drupal_file_path", "")
        record.origin["drupal_file_path"] = path.replace(DRUPAL_PUBLIC_SCHEME, "")
        record.fields["post_modified"] = record.fields.get("post_date")
        return record


class UserParser(BaseItemParser):
    """Drupal users -> WordPress users."""

    kind = EntityKind.USER.value
    text_fields = ("user_login", "user_email")
    int_fields = ("drupal_user_id", "drupal_user_status", "drupal_role_id")
    date_fields = ("user_registered",)

    def __init__(self, anonymize_emails: bool = False, password_length: int = 12):
        self.anonymize_emails = anonymize_emails
        self.password_length = password_length

    def normalize(self, record: EntityRecord) -> EntityRecord:
        if not record.origin.get("drupal_user_id"):
            raise ItemParseSkip("User without an id", row=record.to_dict())

        # Users have to go through password recovery after the migration.
        record.fields["user_pass"] = generate_password(self.password_length)

        if self.anonymize_emails:
            record.fields["user_email"] = f"{sanitize_title(record.fields.get('user_login', ''))}@example.local"
        return record


class PostContentParser(BaseItemParser):
    """Existing WordPress posts, for the posts validator."""

    kind = EntityKind.POST.value
    text_fields = ("post_content",)
    int_fields = ("ID",)
    relation_keys = ("body_content_images",)

    def __init__(self, first_party_host: str):
        self.first_party_host = first_party_host

    def normalize(self, record: EntityRecord) -> EntityRecord:
        record.target_id = record.fields.get("ID") or None
        if not record.target_id:
            raise ItemParseSkip("Post without an ID", row=record.to_dict())

        record.relations["body_content_images"] = find_content_images(
            record.fields.get("post_content", ""),
            self.first_party_host,
        )
        return record
