"""Tests for jobs, records and configuration."""

import json

import pytest

from drupal7_importer.exceptions import ConfigurationError
from drupal7_importer.models.config import DEFAULT_ROLE_MAPPING, DatabaseConfig, ImporterConfig
from drupal7_importer.models.migration import (
    DEFAULT_PAGE_SIZE,
    EntityKind,
    JobState,
    JobSummary,
    MigrationJob,
    parse_entity_types,
    resolve_page_size,
)
from drupal7_importer.models.record import EntityRecord, MigrationResult


class TestPageSize:

    def test_sentinel_means_default(self):
        assert resolve_page_size(-1) == DEFAULT_PAGE_SIZE
        assert resolve_page_size("-1") == DEFAULT_PAGE_SIZE

    def test_zero_means_default(self):
        assert resolve_page_size(0) == DEFAULT_PAGE_SIZE

    def test_positive_kept(self):
        assert resolve_page_size(25) == 25

    def test_other_negatives_rejected(self):
        with pytest.raises(ValueError):
            resolve_page_size(-5)


class TestEntityTypes:

    def test_all_disables_filter(self):
        assert parse_entity_types("all") is None
        assert parse_entity_types("") is None
        assert parse_entity_types(None) is None

    def test_list_is_trimmed(self):
        assert parse_entity_types("article, page ,") == ["article", "page"]


class TestMigrationJob:

    def test_total_is_counted_once(self):
        job = MigrationJob(kind=EntityKind.POST)
        calls = []

        def counter(j):
            calls.append(j)
            return 42

        assert job.resolve_total(counter) == 42
        assert job.resolve_total(counter) == 42
        assert len(calls) == 1
        assert job.total_count == 42

    def test_planned_total_respects_limit(self):
        job = MigrationJob(kind=EntityKind.POST, offset=10, limit=5)
        job.resolve_total(lambda j: 100)
        assert job.planned_total == 15

    def test_planned_total_without_limit(self):
        job = MigrationJob(kind=EntityKind.POST)
        job.resolve_total(lambda j: 7)
        assert job.planned_total == 7

    def test_cancel(self):
        job = MigrationJob(kind=EntityKind.USER)
        assert not job.cancelled
        job.cancel()
        assert job.cancelled

    def test_to_dict(self):
        job = MigrationJob(kind=EntityKind.IMAGE, args={"entity_type": "article"})
        data = job.to_dict()
        assert data["kind"] == "image"
        assert data["mode"] == "import"
        assert data["args"] == {"entity_type": "article"}
        assert job.entity_types == ["article"]


class TestEntityRecord:

    def test_from_row_splits_namespaces(self):
        record = EntityRecord.from_row(
            "post",
            {"post_title": "T", "drupal_nid": 3, "url_alias": ["a"]},
            relation_keys=("url_alias",),
        )
        assert record.fields == {"post_title": "T"}
        assert record.origin == {"drupal_nid": 3}
        assert record.relations == {"url_alias": ["a"]}

    def test_item_access_routes_by_prefix(self):
        record = EntityRecord(kind="post")
        record["drupal_sticky"] = 1
        record["post_title"] = "Hello"
        assert record.origin["drupal_sticky"] == 1
        assert record["post_title"] == "Hello"
        assert "drupal_sticky" in record
        assert record.get("missing", "x") == "x"

    def test_meta_items(self):
        record = EntityRecord(kind="user", origin={"drupal_user_id": 5, "drupal_role_id": 3})
        assert record.meta_items() == [("_drupal_user_id", 5), ("_drupal_role_id", 3)]

    def test_result_to_dict(self):
        result = MigrationResult(record_id=1, success=False, error="boom", error_code="x")
        data = result.to_dict()
        assert data["error"] == "boom"
        assert data["loaded_at"] is None


class TestJobSummary:

    def test_to_dict(self):
        summary = JobSummary(kind="post", mode="import", state=JobState.DONE, total_count=3)
        data = summary.to_dict()
        assert data["state"] == "done"
        assert data["total_count"] == 3
        assert data["duration_seconds"] is None


class TestConfig:

    def test_defaults(self):
        config = ImporterConfig()
        assert config.table_prefix == "wp_"
        assert config.per_page == 100
        assert config.skip_existing is True
        assert config.role_mapping == DEFAULT_ROLE_MAPPING
        assert config.role_mapping[3] == "administrator"
        assert config.role_mapping[4] == "editor"

    def test_drupal_db_falls_back_to_wordpress_credentials(self):
        config = ImporterConfig(wordpress_db=DatabaseConfig(host="db", user="wp", password="s", name="wordpress"))
        drupal = config.resolved_drupal_db()
        assert drupal.host == "db"
        assert drupal.user == "wp"
        assert drupal.password == "s"
        assert drupal.name == "drupal"

    def test_url_requires_explicit_drupal_db(self):
        config = ImporterConfig(wordpress_db=DatabaseConfig(url="sqlite://"))
        with pytest.raises(ConfigurationError):
            config.resolved_drupal_db()

    def test_missing_database_name(self):
        with pytest.raises(ConfigurationError):
            DatabaseConfig().sqlalchemy_url()

    def test_describe_hides_password(self):
        description = DatabaseConfig(user="wp", password="secret", name="wordpress").describe()
        assert "secret" not in description
        assert "wordpress" in description

    def test_load_file_and_environment(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "table_prefix": "site_",
            "role_mapping": {"3": "editor"},
            "wordpress_db": {"name": "wordpress", "host": "filehost"},
        }))
        config = ImporterConfig.load(str(path), environ={"WP_DB_HOST": "envhost", "D7_DB_NAME": "legacy"})
        assert config.table_prefix == "site_"
        assert config.role_mapping == {3: "editor"}
        assert config.wordpress_db.host == "envhost"
        assert config.wordpress_db.name == "wordpress"
        assert config.drupal_db.name == "legacy"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ImporterConfig.load(str(tmp_path / "nope.json"), environ={})

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            ImporterConfig.from_dict({"per_page": "many"})
