"""Access to the WordPress database: records, metadata and bookkeeping."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Set

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import SinkWriteError
from ..services.formatting import absint, to_text
from .wp_schema import WordPressTables, build_wp_tables

logger = logging.getLogger(__name__)

_MISSING = object()


class WordPressStore:
    """
    Thin data layer over the WordPress tables.

    Besides inserts and metadata it carries the three process-wide toggles
    WordPress uses during imports:

    - deferred term counting: term counts are recalculated once when
      deferral ends, for every term touched meanwhile
    - deferred comment counting: same, for post comment counts
    - suspended cache invalidation: writes do not evict the read cache

    The toggles are plain flags so switching them back can never fail;
    the recalculation runs afterwards.
    """

    def __init__(
        self,
        engine: Engine,
        table_prefix: str = "wp_",
        uploads_url: str = "/wp-content/uploads",
        site_url: str = ""
    ):
        """
        Initialize the store.

        Args:
            engine: Engine connected to the WordPress database
            table_prefix: WordPress table prefix
            uploads_url: Public base URL of the uploads directory
            site_url: Site URL used to build post GUIDs
        """
        self.engine = engine
        self.tables: WordPressTables = build_wp_tables(table_prefix)
        self.table_prefix = table_prefix
        self.uploads_url = uploads_url.rstrip("/")
        self.site_url = site_url.rstrip("/")

        self._defer_terms = False
        self._defer_comments = False
        self._cache_suspended = False
        self._pending_terms: Set[int] = set()
        self._pending_comment_posts: Set[int] = set()
        self._cache: Dict[Any, Any] = {}

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------

    @property
    def term_counting_deferred(self) -> bool:
        return self._defer_terms

    @property
    def comment_counting_deferred(self) -> bool:
        return self._defer_comments

    @property
    def cache_invalidation_suspended(self) -> bool:
        return self._cache_suspended

    def defer_term_counting(self, defer: bool) -> None:
        """Defer term counting; turning it off recounts deferred terms."""
        self._defer_terms = defer
        if not defer and self._pending_terms:
            pending = set(self._pending_terms)
            self.update_term_counts(pending)
            self._pending_terms -= pending

    def defer_comment_counting(self, defer: bool) -> None:
        """Defer comment counting; turning it off recounts deferred posts."""
        self._defer_comments = defer
        if not defer and self._pending_comment_posts:
            pending = set(self._pending_comment_posts)
            self.update_comment_counts(pending)
            self._pending_comment_posts -= pending

    def suspend_cache_invalidation(self, suspend: bool) -> None:
        self._cache_suspended = suspend

    # ------------------------------------------------------------------
    # Read cache
    # ------------------------------------------------------------------

    def flush_cache(self) -> None:
        """Drop every cached read."""
        self._cache.clear()

    def clear_local_object_cache(self) -> None:
        """Free the read cache between items to keep memory flat on long runs."""
        self._cache.clear()

    def _invalidate(self, *keys: Any) -> None:
        if self._cache_suspended:
            return
        for key in keys:
            self._cache.pop(key, None)

    def _cached(self, key: Any, loader):
        value = self._cache.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self._cache[key] = value
        return value

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        One transaction; database errors become SinkWriteError.
        """
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise SinkWriteError("db_insert_error", f"Could not write to the database: {e}") from e

    def insert_post(self, conn: Connection, values: Dict[str, Any]) -> int:
        """Insert a ``posts`` row and return its ID."""
        result = conn.execute(insert(self.tables.posts).values(**values))
        post_id = int(result.inserted_primary_key[0])
        if not values.get("guid"):
            conn.execute(
                update(self.tables.posts)
                .where(self.tables.posts.c.ID == post_id)
                .values(guid=f"{self.site_url}/?p={post_id}")
            )
        self._mark_post_dirty(conn, post_id)
        return post_id

    def update_post(self, conn: Connection, post_id: int, values: Dict[str, Any]) -> int:
        """Update a ``posts`` row; raises SinkWriteError if it does not exist."""
        result = conn.execute(
            update(self.tables.posts).where(self.tables.posts.c.ID == post_id).values(**values)
        )
        if result.rowcount == 0:
            raise SinkWriteError("invalid_post", f"Invalid post ID: {post_id}")
        self._mark_post_dirty(conn, post_id)
        self._invalidate(("post", post_id))
        return post_id

    def insert_user(self, conn: Connection, values: Dict[str, Any]) -> int:
        result = conn.execute(insert(self.tables.users).values(**values))
        return int(result.inserted_primary_key[0])

    def add_post_meta(self, conn: Connection, post_id: int, key: str, value: Any) -> None:
        conn.execute(
            insert(self.tables.postmeta).values(post_id=post_id, meta_key=key, meta_value=to_text(value))
        )
        self._invalidate(("postmeta", key, to_text(value)), ("post_meta", post_id, key))

    def add_user_meta(self, conn: Connection, user_id: int, key: str, value: Any) -> None:
        conn.execute(
            insert(self.tables.usermeta).values(user_id=user_id, meta_key=key, meta_value=to_text(value))
        )
        self._invalidate(("usermeta", key, to_text(value)))

    def _mark_post_dirty(self, conn: Connection, post_id: int) -> None:
        """Recount the post's terms and comments now, or later if deferred."""
        term_ids = self.post_term_taxonomy_ids(post_id, conn)
        if self._defer_terms:
            self._pending_terms.update(term_ids)
        elif term_ids:
            self.update_term_counts(term_ids, conn)

        if self._defer_comments:
            self._pending_comment_posts.add(post_id)
        else:
            self.update_comment_counts([post_id], conn)

    @contextmanager
    def _connection(self, conn: Optional[Connection]) -> Iterator[Connection]:
        """Use ``conn`` when given, otherwise a fresh transaction."""
        if conn is not None:
            yield conn
            return
        try:
            with self.engine.begin() as fresh:
                yield fresh
        except SQLAlchemyError as e:
            raise SinkWriteError("db_update_error", f"Could not update the database: {e}") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_post_id_by_meta(self, key: str, value: Any) -> Optional[int]:
        """ID of the first post carrying ``key = value`` metadata."""
        value = to_text(value)

        def load():
            pm = self.tables.postmeta
            query = (
                select(pm.c.post_id)
                .where(pm.c.meta_key == key, pm.c.meta_value == value)
                .order_by(pm.c.meta_id)
                .limit(1)
            )
            with self.engine.connect() as conn:
                found = conn.execute(query).scalar()
            return int(found) if found is not None else None

        return self._cached(("postmeta", key, value), load)

    def find_user_id_by_meta(self, key: str, value: Any) -> Optional[int]:
        value = to_text(value)

        def load():
            um = self.tables.usermeta
            query = (
                select(um.c.user_id)
                .where(um.c.meta_key == key, um.c.meta_value == value)
                .order_by(um.c.umeta_id)
                .limit(1)
            )
            with self.engine.connect() as conn:
                found = conn.execute(query).scalar()
            return int(found) if found is not None else None

        return self._cached(("usermeta", key, value), load)

    def get_post_meta(self, post_id: int, key: str) -> Optional[str]:
        def load():
            pm = self.tables.postmeta
            query = (
                select(pm.c.meta_value)
                .where(pm.c.post_id == post_id, pm.c.meta_key == key)
                .order_by(pm.c.meta_id)
                .limit(1)
            )
            with self.engine.connect() as conn:
                return conn.execute(query).scalar()

        return self._cached(("post_meta", post_id, key), load)

    def user_id_map(self, meta_key: str = "_drupal_user_id") -> Dict[int, int]:
        """``{drupal_uid: wp_user_id}`` for every user carrying ``meta_key``."""
        um = self.tables.usermeta
        query = select(um.c.meta_value, um.c.user_id).where(um.c.meta_key == meta_key)
        with self.engine.connect() as conn:
            return {absint(drupal_uid): absint(user_id) for drupal_uid, user_id in conn.execute(query)}

    def attachment_url(self, post_id: int) -> Optional[str]:
        """Public URL of an attachment, from its ``_wp_attached_file``."""
        attached = self.get_post_meta(post_id, "_wp_attached_file")
        if attached:
            return f"{self.uploads_url}/{attached}"

        posts = self.tables.posts
        with self.engine.connect() as conn:
            guid = conn.execute(
                select(posts.c.guid).where(posts.c.ID == post_id, posts.c.post_type == "attachment")
            ).scalar()
        return guid or None

    def post_name_exists(self, post_name: str, post_type: str, conn: Optional[Connection] = None) -> bool:
        posts = self.tables.posts
        query = select(func.count()).where(posts.c.post_name == post_name, posts.c.post_type == post_type)
        with self._connection(conn) as c:
            return bool(c.execute(query).scalar())

    def user_exists(self, column: str, value: str, conn: Optional[Connection] = None) -> bool:
        users = self.tables.users
        query = select(func.count()).where(users.c[column] == value)
        with self._connection(conn) as c:
            return bool(c.execute(query).scalar())

    def unique_post_name(self, slug: str, post_type: str, conn: Optional[Connection] = None) -> str:
        """``slug``, or ``slug-2``, ``slug-3``... if it is taken."""
        if not slug or not self.post_name_exists(slug, post_type, conn):
            return slug
        suffix = 2
        while self.post_name_exists(f"{slug}-{suffix}", post_type, conn):
            suffix += 1
        return f"{slug}-{suffix}"

    def post_term_taxonomy_ids(self, post_id: int, conn: Optional[Connection] = None) -> Set[int]:
        tr = self.tables.term_relationships
        with self._connection(conn) as c:
            return {
                int(row[0])
                for row in c.execute(select(tr.c.term_taxonomy_id).where(tr.c.object_id == post_id))
            }

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def update_term_counts(self, term_taxonomy_ids, conn: Optional[Connection] = None) -> None:
        """Recount published objects per term."""
        tt = self.tables.term_taxonomy
        tr = self.tables.term_relationships
        ids = sorted(set(term_taxonomy_ids))
        if not ids:
            return
        counted = (
            select(func.count())
            .select_from(tr)
            .where(tr.c.term_taxonomy_id == tt.c.term_taxonomy_id)
            .scalar_subquery()
        )
        with self._connection(conn) as c:
            c.execute(update(tt).where(tt.c.term_taxonomy_id.in_(ids)).values(count=counted))
        logger.debug(f"Recounted {len(ids)} terms")

    def update_comment_counts(self, post_ids, conn: Optional[Connection] = None) -> None:
        """Recount approved comments per post."""
        posts = self.tables.posts
        comments = self.tables.comments
        ids = sorted(set(post_ids))
        if not ids:
            return
        counted = (
            select(func.count())
            .select_from(comments)
            .where(comments.c.comment_post_ID == posts.c.ID, comments.c.comment_approved == "1")
            .scalar_subquery()
        )
        with self._connection(conn) as c:
            c.execute(update(posts).where(posts.c.ID.in_(ids)).values(comment_count=counted))

    def refresh_term_hierarchy(self) -> None:
        """
        Drop the cached ``<taxonomy>_children`` options so WordPress
        rebuilds the term hierarchy on next use.
        """
        tt = self.tables.term_taxonomy
        options = self.tables.options
        with self._connection(None) as conn:
            taxonomies = [row[0] for row in conn.execute(select(tt.c.taxonomy).distinct())]
            if taxonomies:
                conn.execute(
                    delete(options).where(options.c.option_name.in_([f"{tax}_children" for tax in taxonomies]))
                )
        logger.debug(f"Refreshed term hierarchy for {len(taxonomies)} taxonomies")
