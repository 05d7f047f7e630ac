"""Tests for item parsers and content image discovery."""

import pytest

from drupal7_importer.exceptions import ItemParseSkip
from drupal7_importer.models.record import RecordStatus
from drupal7_importer.services.content_images import (
    ContentImageRewriter,
    find_content_images,
    origin_file_path,
)
from drupal7_importer.services.parser import ImageParser, PostContentParser, PostParser, UserParser

HOST = "www.igamingbusiness.com"
PREFIXES = ["/sites/default/files/", "/sites/igamingbusiness.com/files/"]


class TestPostParser:

    def test_parse(self):
        record = PostParser().parse({
            "drupal_nid": "12",
            "drupal_uid": "3",
            "drupal_sticky": "1",
            "post_title": "Title",
            "post_content": None,
            "post_excerpt": None,
            "post_type": "article",
            "comment_status": "open",
            "post_date": "1500000000",
            "post_modified": 1500000060,
            "url_alias": ["news/title"],
        })
        assert record.status == RecordStatus.PARSED
        assert record.origin["drupal_nid"] == 12
        assert record.origin["drupal_sticky"] == 1
        assert record.origin["drupal_node_type"] == "article"
        assert record.fields["post_type"] == "post"
        assert record.fields["post_status"] == "publish"
        assert record.fields["post_content"] == ""
        assert record.fields["post_excerpt"] == ""
        assert record.fields["post_date"] == "2017-07-14 02:40:00"
        assert record.relations["url_alias"] == ["news/title"]

    def test_empty_row_is_skipped(self):
        with pytest.raises(ItemParseSkip):
            PostParser().parse({})
        with pytest.raises(ItemParseSkip):
            PostParser().parse(None)

    def test_row_without_id_is_skipped(self):
        with pytest.raises(ItemParseSkip):
            PostParser().parse({"post_title": "orphan"})


class TestImageParser:

    def test_strips_public_scheme(self):
        record = ImageParser().parse({
            "drupal_file_id": 4,
            "drupal_user_id": 1,
            "drupal_file_path": "public://2019/05/photo.jpg",
            "post_title": "photo.jpg",
            "post_date": 1500000000,
            "post_mime_type": "image/jpeg",
        })
        assert record.origin["drupal_file_path"] == "2019/05/photo.jpg"
        assert record.fields["post_date"] == "2017-07-14 02:40:00"
        assert record.fields["post_modified"] == record.fields["post_date"]


class TestUserParser:

    def _row(self, **overrides):
        row = {
            "drupal_user_id": 5,
            "user_login": "jane",
            "user_email": "jane@example.com",
            "user_registered": 1500000000,
            "drupal_user_status": 1,
            "drupal_role_id": None,
        }
        row.update(overrides)
        return row

    def test_parse(self):
        record = UserParser().parse(self._row())
        assert record.fields["user_login"] == "jane"
        assert len(record.fields["user_pass"]) == 12
        assert record.origin["drupal_role_id"] == 0
        assert record.fields["user_registered"] == "2017-07-14 02:40:00"

    def test_passwords_differ(self):
        parser = UserParser()
        assert parser.parse(self._row())["user_pass"] != parser.parse(self._row())["user_pass"]

    def test_anonymized_email(self):
        record = UserParser(anonymize_emails=True).parse(self._row(user_login="Jane Doe"))
        assert record.fields["user_email"] == "jane-doe@example.local"


class TestContentImages:

    def test_finds_first_party_and_relative_images(self):
        content = (
            '<img src="/sites/default/files/a.jpg">'
            "<img src='https://www.igamingbusiness.com/sites/default/files/b%20c.png'>"
            '<img src="/sites/default/files/a.jpg">'
        )
        images = find_content_images(content, HOST)
        assert [i.src for i in images] == [
            "/sites/default/files/a.jpg",
            "https://www.igamingbusiness.com/sites/default/files/b%20c.png",
        ]

    def test_skips_other_hosts_and_data_uris(self):
        content = '<img src="https://cdn.example.com/x.jpg"><img src="data:image/png;base64,AAAA">'
        assert find_content_images(content, HOST) == []

    def test_no_src(self):
        assert find_content_images("<p>No images</p>", HOST) == []

    def test_origin_file_path(self):
        assert origin_file_path("/sites/default/files/2019/a%20b.jpg", PREFIXES) == "2019/a b.jpg"
        assert origin_file_path("/sites/igamingbusiness.com/files/x.png", PREFIXES) == "x.png"
        assert origin_file_path("/elsewhere/x.png", PREFIXES) == "/elsewhere/x.png"

    def test_rewriter(self):
        content = '<img src="/sites/default/files/a.jpg"><img src="/sites/default/files/missing.jpg">'
        images = find_content_images(content, HOST)
        urls = {"a.jpg": "/wp-content/uploads/2017/07/a.jpg"}
        result = ContentImageRewriter(urls.get, PREFIXES).rewrite(content, images)
        assert result.changed
        assert result.content == (
            '<img src="/wp-content/uploads/2017/07/a.jpg"><img src="/sites/default/files/missing.jpg">'
        )

    def test_rewriter_without_matches(self):
        content = '<img src="/sites/default/files/a.jpg">'
        result = ContentImageRewriter(lambda path: None, PREFIXES).rewrite(
            content, find_content_images(content, HOST)
        )
        assert not result.changed
        assert result.content == content


class TestPostContentParser:

    def test_collects_images(self):
        record = PostContentParser(HOST).parse({
            "ID": 9,
            "post_title": "t",
            "post_type": "post",
            "post_content": '<img src="/sites/default/files/a.jpg">',
        })
        assert record.target_id == 9
        assert [i.path for i in record.relations["body_content_images"]] == ["/sites/default/files/a.jpg"]
