"""Pytest configuration for drupal7_importer tests."""

import pytest
from sqlalchemy import create_engine, insert

from drupal7_importer.extractors import drupal_schema
from drupal7_importer.loaders.store import WordPressStore
from drupal7_importer.loaders.wp_schema import build_wp_tables
from drupal7_importer.models.config import DatabaseConfig, ImporterConfig
from drupal7_importer.orchestrator import MigrationOrchestrator
from drupal7_importer.services.progress import ProgressReporter

# 2017-07-14 02:40:00 UTC
CREATED = 1500000000


class DrupalSeeder:
    """Inserts Drupal 7 rows into a test database."""

    def __init__(self, engine):
        self.engine = engine

    def node(self, nid, title=None, body="<p>Body</p>", summary="", type="article",
             status=1, uid=0, comment=2, sticky=0, with_body=True, aliases=()):
        with self.engine.begin() as conn:
            conn.execute(insert(drupal_schema.node).values(
                nid=nid, vid=nid, type=type, title=title if title is not None else f"Node {nid}",
                uid=uid, status=status, created=CREATED + nid, changed=CREATED + nid + 60,
                comment=comment, sticky=sticky,
            ))
            if with_body:
                conn.execute(insert(drupal_schema.field_data_body).values(
                    entity_type="node", bundle=type, entity_id=nid, revision_id=nid,
                    body_value=body, body_summary=summary, body_format="full_html",
                ))
            for alias in aliases:
                conn.execute(insert(drupal_schema.url_alias).values(source=f"node/{nid}", alias=alias))

    def nodes(self, count, start=1, **kwargs):
        for nid in range(start, start + count):
            self.node(nid, **kwargs)

    def user(self, uid, name=None, mail=None, status=1, roles=()):
        name = name or f"user{uid}"
        with self.engine.begin() as conn:
            conn.execute(insert(drupal_schema.users).values(
                uid=uid, name=name, mail=mail if mail is not None else f"{name}@example.com",
                created=CREATED, status=status,
            ))
            for rid in roles:
                conn.execute(insert(drupal_schema.users_roles).values(uid=uid, rid=rid))

    def file(self, fid, uri, uid=1, status=1, filemime="image/jpeg", timestamp=CREATED):
        with self.engine.begin() as conn:
            conn.execute(insert(drupal_schema.file_managed).values(
                fid=fid, uid=uid, filename=uri.rsplit("/", 1)[-1], uri=uri,
                filemime=filemime, status=status, timestamp=timestamp,
            ))


@pytest.fixture
def drupal_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'drupal.db'}")
    drupal_schema.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def wp_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'wordpress.db'}")
    build_wp_tables("wp_").metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def drupal(drupal_engine):
    return DrupalSeeder(drupal_engine)


@pytest.fixture
def store(wp_engine):
    return WordPressStore(wp_engine, table_prefix="wp_", uploads_url="/wp-content/uploads",
                          site_url="http://example.test")


@pytest.fixture
def config(tmp_path):
    return ImporterConfig(
        wordpress_db=DatabaseConfig(url=f"sqlite:///{tmp_path / 'wordpress.db'}"),
        drupal_db=DatabaseConfig(url=f"sqlite:///{tmp_path / 'drupal.db'}"),
        uploads_path=str(tmp_path / "uploads"),
        import_path=str(tmp_path / "import"),
        site_url="http://example.test",
    )


@pytest.fixture
def orchestrator(config, wp_engine, drupal_engine):
    return MigrationOrchestrator(
        config,
        wordpress_engine=wp_engine,
        drupal_engine=drupal_engine,
        progress_factory=ProgressReporter,
    )


@pytest.fixture
def import_dir(tmp_path):
    path = tmp_path / "import"
    path.mkdir()
    return path
