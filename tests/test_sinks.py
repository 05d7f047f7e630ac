"""Tests for the WordPress store and sinks."""

import pytest
import requests
from sqlalchemy import insert, select

from drupal7_importer.exceptions import SinkWriteError
from drupal7_importer.loaders.media import MediaFetcher
from drupal7_importer.loaders.wordpress import (
    AttachmentSink,
    PostSink,
    UserSink,
    hash_password,
    serialize_capabilities,
)
from drupal7_importer.models.record import EntityRecord, RecordStatus
from drupal7_importer.services.job_context import ImportContext


def _post_record(nid=1, **fields):
    values = {
        "post_title": f"Post {nid}",
        "post_content": "<p>Body</p>",
        "post_excerpt": "",
        "post_type": "post",
        "post_status": "publish",
        "comment_status": "open",
        "post_date": "2017-07-14 02:40:00",
        "post_modified": "2017-07-14 02:41:00",
        "post_author": 0,
    }
    values.update(fields)
    return EntityRecord(
        kind="post",
        fields=values,
        origin={"drupal_nid": nid, "drupal_sticky": 0, "drupal_node_type": "article"},
    )


def _meta(store, post_id):
    pm = store.tables.postmeta
    with store.engine.connect() as conn:
        return dict(conn.execute(select(pm.c.meta_key, pm.c.meta_value).where(pm.c.post_id == post_id)).all())


def _user_meta(store, user_id):
    um = store.tables.usermeta
    with store.engine.connect() as conn:
        return dict(conn.execute(select(um.c.meta_key, um.c.meta_value).where(um.c.user_id == user_id)).all())


def _post(store, post_id):
    posts = store.tables.posts
    with store.engine.connect() as conn:
        return conn.execute(select(posts).where(posts.c.ID == post_id)).mappings().one()


class TestPostSink:

    def test_insert_with_metadata(self, store):
        sink = PostSink(store)
        record = _post_record(7)
        result = sink.insert(record)

        assert result.success
        assert record.status == RecordStatus.LOADED
        row = _post(store, result.target_id)
        assert row["post_title"] == "Post 7"
        assert row["post_name"] == "post-7"
        assert row["post_date_gmt"] == "2017-07-14 02:40:00"
        assert row["guid"] == f"http://example.test/?p={result.target_id}"
        assert _meta(store, result.target_id) == {
            "_drupal_nid": "7",
            "_drupal_sticky": "0",
            "_drupal_node_type": "article",
        }

    def test_empty_post_fails(self, store):
        result = PostSink(store).insert(_post_record(1, post_title="", post_content="", post_excerpt=""))
        assert not result.success
        assert result.error_code == "empty_content"
        assert result.record_id == 1

    def test_duplicate_titles_get_unique_slugs(self, store):
        sink = PostSink(store)
        first = sink.insert(_post_record(1, post_title="Same"))
        second = sink.insert(_post_record(2, post_title="Same"))
        assert _post(store, first.target_id)["post_name"] == "same"
        assert _post(store, second.target_id)["post_name"] == "same-2"

    def test_exists(self, store):
        sink = PostSink(store)
        record = _post_record(3)
        assert sink.exists(record) is None
        result = sink.insert(record)
        store.clear_local_object_cache()
        assert sink.exists(_post_record(3)) == result.target_id

    def test_update(self, store):
        sink = PostSink(store)
        post_id = sink.insert(_post_record(1)).target_id
        record = EntityRecord(kind="post", fields={"post_content": "<p>New</p>"}, target_id=post_id)
        result = sink.update(record)
        assert result.success
        assert _post(store, post_id)["post_content"] == "<p>New</p>"

    def test_update_missing_post(self, store):
        result = PostSink(store).update(EntityRecord(kind="post", fields={"post_content": "x"}, target_id=999))
        assert not result.success
        assert result.error_code == "invalid_post"


class TestUserSink:

    def _record(self, uid=5, login="jane", email="jane@example.com", role="administrator"):
        return EntityRecord(
            kind="user",
            fields={
                "user_login": login,
                "user_email": email,
                "user_registered": "2017-07-14 02:40:00",
                "user_pass": "secret",
                "role": role,
            },
            origin={"drupal_user_id": uid, "drupal_role_id": 3},
        )

    def test_insert(self, store):
        result = UserSink(store).insert(self._record())
        assert result.success

        users = store.tables.users
        with store.engine.connect() as conn:
            row = conn.execute(select(users).where(users.c.ID == result.target_id)).mappings().one()
        assert row["user_login"] == "jane"
        assert row["user_pass"] == hash_password("secret")
        assert row["user_nicename"] == "jane"

        meta = _user_meta(store, result.target_id)
        assert meta["wp_capabilities"] == 'a:1:{s:13:"administrator";b:1;}'
        assert meta["wp_user_level"] == "10"
        assert meta["_drupal_user_id"] == "5"
        assert meta["_drupal_role_id"] == "3"

    def test_user_id_map(self, store):
        user_id = UserSink(store).insert(self._record(uid=42)).target_id
        assert store.user_id_map() == {42: user_id}

    def test_duplicate_login(self, store):
        sink = UserSink(store)
        sink.insert(self._record())
        result = sink.insert(self._record(uid=6, email="other@example.com"))
        assert not result.success
        assert result.error_code == "existing_user_login"

    def test_duplicate_email(self, store):
        sink = UserSink(store)
        sink.insert(self._record())
        result = sink.insert(self._record(uid=6, login="john"))
        assert result.error_code == "existing_user_email"

    def test_empty_login(self, store):
        result = UserSink(store).insert(self._record(login="  "))
        assert result.error_code == "empty_user_login"

    def test_exists(self, store):
        sink = UserSink(store)
        user_id = sink.insert(self._record(uid=9)).target_id
        store.clear_local_object_cache()
        assert sink.exists(self._record(uid=9)) == user_id
        assert sink.exists(self._record(uid=10)) is None

    def test_serialize_capabilities(self):
        assert serialize_capabilities("editor") == 'a:1:{s:6:"editor";b:1;}'


class TestAttachmentSink:

    def _record(self, fid=1, path="2019/photo.jpg"):
        return EntityRecord(
            kind="image",
            fields={
                "post_title": "photo.jpg",
                "post_date": "2017-07-14 02:40:00",
                "post_modified": "2017-07-14 02:40:00",
                "post_mime_type": "image/jpeg",
            },
            origin={"drupal_file_id": fid, "drupal_user_id": 1, "drupal_file_path": path},
        )

    def test_copies_file_and_registers_attachment(self, store, tmp_path, import_dir):
        (import_dir / "2019").mkdir()
        (import_dir / "2019" / "photo.jpg").write_bytes(b"jpeg")
        uploads = tmp_path / "uploads"
        sink = AttachmentSink(store, MediaFetcher(import_dir), uploads)

        result = sink.insert(self._record())

        assert result.success
        assert (uploads / "2017" / "07" / "photo.jpg").read_bytes() == b"jpeg"
        row = _post(store, result.target_id)
        assert row["post_type"] == "attachment"
        assert row["post_status"] == "inherit"
        assert row["post_mime_type"] == "image/jpeg"
        meta = _meta(store, result.target_id)
        assert meta["_wp_attached_file"] == "2017/07/photo.jpg"
        assert meta["_drupal_file_path"] == "2019/photo.jpg"
        assert meta["_drupal_file_id"] == "1"
        assert store.attachment_url(result.target_id) == "/wp-content/uploads/2017/07/photo.jpg"

    def test_second_copy_gets_unique_name(self, store, tmp_path, import_dir):
        (import_dir / "photo.jpg").write_bytes(b"jpeg")
        sink = AttachmentSink(store, MediaFetcher(import_dir), tmp_path / "uploads")
        sink.insert(self._record(1, "photo.jpg"))
        result = sink.insert(self._record(2, "photo.jpg"))
        assert _meta(store, result.target_id)["_wp_attached_file"] == "2017/07/photo-1.jpg"

    def test_missing_file(self, store, tmp_path, import_dir):
        sink = AttachmentSink(store, MediaFetcher(import_dir), tmp_path / "uploads")
        result = sink.insert(self._record(path="nope.jpg"))
        assert not result.success
        assert result.error_code == "file_not_found"


class FakeResponse:

    def __init__(self, body=b"", status=200):
        self.body = body
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} Error")

    def iter_content(self, chunk_size=1):
        yield self.body

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class FakeSession:

    def __init__(self, response):
        self.response = response
        self.urls = []
        self.closed = False

    def get(self, url, **kwargs):
        self.urls.append(url)
        return self.response

    def close(self):
        self.closed = True


class TestMediaFetcher:

    def test_local_file(self, import_dir):
        (import_dir / "a.jpg").write_bytes(b"x")
        assert MediaFetcher(import_dir).locate("a.jpg") == import_dir / "a.jpg"

    def test_download_missing_file(self, import_dir):
        session = FakeSession(FakeResponse(b"remote"))
        fetcher = MediaFetcher(import_dir, origin_files_url="https://old.example.com/sites/default/files",
                               session=session)
        path = fetcher.locate("2019/a b.jpg")
        assert path.read_bytes() == b"remote"
        assert session.urls == ["https://old.example.com/sites/default/files/2019/a%20b.jpg"]

    def test_download_failure(self, import_dir):
        fetcher = MediaFetcher(import_dir, origin_files_url="https://old.example.com/files/",
                               session=FakeSession(FakeResponse(status=404)))
        with pytest.raises(SinkWriteError) as exc_info:
            fetcher.locate("a.jpg")
        assert exc_info.value.code == "download_failed"
        assert not (import_dir / "a.jpg").exists()

    def test_attachment_sink_close_closes_session(self, store, tmp_path, import_dir):
        session = FakeSession(FakeResponse())
        sink = AttachmentSink(store, MediaFetcher(import_dir, session=session), tmp_path / "uploads")
        sink.close()
        assert session.closed


class TestStoreBookkeeping:

    def _term(self, store, taxonomy="category"):
        with store.engine.begin() as conn:
            result = conn.execute(insert(store.tables.term_taxonomy).values(term_id=1, taxonomy=taxonomy, count=0))
            return result.inserted_primary_key[0]

    def _count(self, store, tt_id):
        tt = store.tables.term_taxonomy
        with store.engine.connect() as conn:
            return conn.execute(select(tt.c.count).where(tt.c.term_taxonomy_id == tt_id)).scalar()

    def test_term_counts_deferred_until_context_ends(self, store):
        tt_id = self._term(store)
        post_id = PostSink(store).insert(_post_record(1)).target_id
        with store.engine.begin() as conn:
            conn.execute(insert(store.tables.term_relationships).values(object_id=post_id, term_taxonomy_id=tt_id))

        with ImportContext(store):
            assert store.term_counting_deferred
            sink = PostSink(store)
            record = EntityRecord(kind="post", fields={"post_content": "<p>x</p>"}, target_id=post_id)
            sink.update(record)
            assert self._count(store, tt_id) == 0

        assert not store.term_counting_deferred
        assert self._count(store, tt_id) == 1

    def test_context_restores_toggles_on_exception(self, store):
        with pytest.raises(RuntimeError):
            with ImportContext(store):
                assert store.comment_counting_deferred
                assert store.cache_invalidation_suspended
                raise RuntimeError("boom")
        assert not store.term_counting_deferred
        assert not store.comment_counting_deferred
        assert not store.cache_invalidation_suspended

    def test_failed_term_recount_still_restores_toggles(self, store, monkeypatch):
        tt_id = self._term(store)
        post_id = PostSink(store).insert(_post_record(1)).target_id
        with store.engine.begin() as conn:
            conn.execute(insert(store.tables.term_relationships).values(object_id=post_id, term_taxonomy_id=tt_id))

        def failing_recount(ids, conn=None):
            raise SinkWriteError("db_update_error", "lost connection")

        monkeypatch.setattr(store, "update_term_counts", failing_recount)
        with pytest.raises(SinkWriteError):
            with ImportContext(store):
                record = EntityRecord(kind="post", fields={"post_content": "<p>x</p>"}, target_id=post_id)
                PostSink(store).update(record)

        assert not store.term_counting_deferred
        assert not store.comment_counting_deferred
        assert not store.cache_invalidation_suspended
        assert self._count(store, tt_id) == 0

        # The deferred terms are kept for the next recount.
        monkeypatch.undo()
        store.defer_term_counting(False)
        assert self._count(store, tt_id) == 1

    def test_comment_counts(self, store):
        post_id = PostSink(store).insert(_post_record(1)).target_id
        with store.engine.begin() as conn:
            conn.execute(insert(store.tables.comments).values(comment_post_ID=post_id, comment_approved="1"))
            conn.execute(insert(store.tables.comments).values(comment_post_ID=post_id, comment_approved="0"))
        store.update_comment_counts([post_id])
        assert _post(store, post_id)["comment_count"] == 1

    def test_refresh_term_hierarchy(self, store):
        self._term(store, "category")
        with store.engine.begin() as conn:
            conn.execute(insert(store.tables.options).values(option_name="category_children", option_value="a:0:{}"))
            conn.execute(insert(store.tables.options).values(option_name="siteurl", option_value="x"))
        store.refresh_term_hierarchy()
        options = store.tables.options
        with store.engine.connect() as conn:
            names = [r[0] for r in conn.execute(select(options.c.option_name))]
        assert names == ["siteurl"]
