"""Sinks writing posts, attachments and users into WordPress."""

import hashlib
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import Table

from ..exceptions import SinkWriteError
from ..models.record import EntityRecord, MigrationResult
from ..services.formatting import EPOCH, WP_DATETIME_FORMAT, sanitize_title, to_text
from .base import BaseSink
from .media import MediaFetcher
from .store import WordPressStore

logger = logging.getLogger(__name__)

# Legacy ``wp_user_level`` values per default role.
USER_LEVELS: Dict[str, int] = {
    "administrator": 10,
    "editor": 7,
    "author": 2,
    "contributor": 1,
    "subscriber": 0,
}


def _row_values(table: Table, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the fields that are columns of ``table``, minus its primary key."""
    columns = set(table.c.keys()) - {c.name for c in table.primary_key.columns}
    return {name: value for name, value in fields.items() if name in columns}


def hash_password(password: str) -> str:
    """
    Hash a password the way WordPress accepts on first login.

    WordPress recognises plain MD5 hashes and rehashes them with its
    current algorithm when the user signs in.
    """
    return hashlib.md5(password.encode("utf-8")).hexdigest()


def serialize_capabilities(role: str) -> str:
    """PHP-serialized ``{role: true}`` as stored in ``wp_capabilities``."""
    return f'a:1:{{s:{len(role.encode("utf-8"))}:"{role}";b:1;}}'


class PostSink(BaseSink):
    """Drupal nodes -> ``posts`` rows with ``_drupal_*`` postmeta."""

    origin_key = "_drupal_nid"

    def __init__(self, store: WordPressStore, post_type: str = "post"):
        super().__init__(store)
        self.post_type = post_type

    def write(self, record: EntityRecord) -> int:
        fields = record.fields
        if not any(to_text(fields.get(name)).strip() for name in ("post_title", "post_content", "post_excerpt")):
            raise SinkWriteError("empty_content", "Content, title, and excerpt are empty.", item=record.to_dict())

        values = _row_values(self.store.tables.posts, fields)
        values.setdefault("post_type", self.post_type)
        for name in ("post_content", "post_title", "post_excerpt"):
            values[name] = to_text(values.get(name))
        values.setdefault("post_date", EPOCH)
        values.setdefault("post_modified", values["post_date"])
        # Dates are already UTC.
        values["post_date_gmt"] = values["post_date"]
        values["post_modified_gmt"] = values["post_modified"]

        with self.store.transaction() as conn:
            values["post_name"] = self.store.unique_post_name(
                sanitize_title(values["post_title"]), values["post_type"], conn
            )
            post_id = self.store.insert_post(conn, values)
            self.write_post_meta(conn, post_id, record)

        logger.debug(f"Inserted post {post_id} from node {record.origin.get('drupal_nid')}")
        return post_id

    def update(self, record: EntityRecord) -> MigrationResult:
        """
        Replace the content of an existing post.

        ``record.target_id`` names the post; only ``post_content`` and the
        modification dates are written.
        """
        now = datetime.now(timezone.utc).strftime(WP_DATETIME_FORMAT)
        values = {
            "post_content": to_text(record.fields.get("post_content")),
            "post_modified": now,
            "post_modified_gmt": now,
        }
        try:
            with self.store.transaction() as conn:
                self.store.update_post(conn, record.target_id, values)
        except SinkWriteError as e:
            return MigrationResult(
                record_id=record.target_id,
                target_id=record.target_id,
                success=False,
                error=str(e),
                error_code=e.code,
            )

        return MigrationResult(
            record_id=record.target_id,
            target_id=record.target_id,
            success=True,
            loaded_at=datetime.utcnow(),
        )


class AttachmentSink(BaseSink):
    """
    Drupal managed files -> attachments.

    The file is copied from the import directory into
    ``<uploads_path>/YYYY/MM/`` (month of the upload date) and registered
    with its ``_wp_attached_file`` path.
    """

    origin_key = "_drupal_file_id"

    def __init__(self, store: WordPressStore, fetcher: MediaFetcher, uploads_path: Path):
        super().__init__(store)
        self.fetcher = fetcher
        self.uploads_path = Path(uploads_path)

    def close(self) -> None:
        self.fetcher.close()

    @staticmethod
    def unique_filename(directory: Path, filename: str) -> str:
        """``filename``, or ``name-1.ext``, ``name-2.ext``... if it exists in ``directory``."""
        candidate = Path(filename)
        number = 0
        while (directory / candidate.name).exists():
            number += 1
            candidate = Path(f"{Path(filename).stem}-{number}{Path(filename).suffix}")
        return candidate.name

    def copy_to_uploads(self, source: Path, post_date: str) -> str:
        """Copy ``source`` into the uploads tree; returns the path relative to it."""
        subdir = f"{post_date[:4]}/{post_date[5:7]}"
        directory = self.uploads_path / subdir
        try:
            directory.mkdir(parents=True, exist_ok=True)
            filename = self.unique_filename(directory, source.name)
            shutil.copy2(source, directory / filename)
        except OSError as e:
            raise SinkWriteError("upload_error", f"Could not copy {source}: {e}") from e
        return f"{subdir}/{filename}"

    def write(self, record: EntityRecord) -> int:
        file_path = to_text(record.origin.get("drupal_file_path"))
        if not file_path:
            raise SinkWriteError("file_not_found", "File path is empty.", item=record.to_dict())

        source = self.fetcher.locate(file_path)

        fields = record.fields
        post_date = to_text(fields.get("post_date")) or EPOCH
        attached_file = self.copy_to_uploads(source, post_date)

        title = to_text(fields.get("post_title")) or source.stem
        values = _row_values(self.store.tables.posts, fields)
        values.update({
            "post_title": title,
            "post_content": "",
            "post_excerpt": "",
            "post_status": "inherit",
            "post_type": "attachment",
            "post_date": post_date,
            "post_date_gmt": post_date,
            "post_modified": to_text(fields.get("post_modified")) or post_date,
            "guid": f"{self.store.site_url}{self.store.uploads_url}/{attached_file}",
        })
        values["post_modified_gmt"] = values["post_modified"]

        try:
            with self.store.transaction() as conn:
                values["post_name"] = self.store.unique_post_name(sanitize_title(title), "attachment", conn)
                post_id = self.store.insert_post(conn, values)
                self.write_post_meta(conn, post_id, record, extra=[("_wp_attached_file", attached_file)])
        except SinkWriteError:
            (self.uploads_path / attached_file).unlink(missing_ok=True)
            raise

        logger.debug(f"Inserted attachment {post_id} for {file_path}")
        return post_id


class UserSink(BaseSink):
    """Drupal users -> ``users`` rows with role capabilities and ``_drupal_*`` usermeta."""

    origin_key = "_drupal_user_id"

    def __init__(self, store: WordPressStore, default_role: str = "subscriber"):
        super().__init__(store)
        self.default_role = default_role

    def find_by_origin(self, value: Any) -> Optional[int]:
        return self.store.find_user_id_by_meta(self.origin_key, value)

    def write(self, record: EntityRecord) -> int:
        fields = record.fields
        login = to_text(fields.get("user_login")).strip()
        email = to_text(fields.get("user_email")).strip()
        if not login:
            raise SinkWriteError(
                "empty_user_login", "Cannot create a user with an empty login name.", item=record.to_dict()
            )

        role = to_text(fields.get("role")) or self.default_role
        prefix = self.store.table_prefix

        with self.store.transaction() as conn:
            if self.store.user_exists("user_login", login, conn):
                raise SinkWriteError("existing_user_login", "Sorry, that username already exists!")
            if email and self.store.user_exists("user_email", email, conn):
                raise SinkWriteError("existing_user_email", "Sorry, that email address is already used!")

            user_id = self.store.insert_user(conn, {
                "user_login": login,
                "user_pass": hash_password(to_text(fields.get("user_pass"))),
                "user_nicename": sanitize_title(login)[:50],
                "user_email": email,
                "user_registered": to_text(fields.get("user_registered")) or EPOCH,
                "display_name": login,
            })

            self.store.add_user_meta(conn, user_id, "nickname", login)
            self.store.add_user_meta(conn, user_id, f"{prefix}capabilities", serialize_capabilities(role))
            self.store.add_user_meta(conn, user_id, f"{prefix}user_level", USER_LEVELS.get(role, 0))
            for key, value in record.meta_items():
                self.store.add_user_meta(conn, user_id, key, value)

        logger.debug(f"Inserted user {user_id} ({login}) as {role}")
        return user_id
