"""
SQLAlchemy Core definitions of the Drupal 7 tables read by the importer.

For the meaning of the columns see the Drupal 7 schema documentation
(``node``, ``field_data_body``, ``url_alias``, ``file_managed``, ``users``,
``users_roles``).
"""

from sqlalchemy import Column, Integer, MetaData, SmallInteger, String, Table, Text

metadata = MetaData()

node = Table(
    "node", metadata,
    Column("nid", Integer, primary_key=True),
    Column("vid", Integer),
    Column("type", String(32), nullable=False, default=""),
    Column("language", String(12), nullable=False, default=""),
    Column("title", String(255), nullable=False, default=""),
    Column("uid", Integer, nullable=False, default=0),
    # 1 = published (visible to non-administrators)
    Column("status", Integer, nullable=False, default=1),
    Column("created", Integer, nullable=False, default=0),
    Column("changed", Integer, nullable=False, default=0),
    # 0 = no comments, 1 = closed (read only), 2 = open (read/write)
    Column("comment", Integer, nullable=False, default=0),
    Column("promote", Integer, nullable=False, default=0),
    Column("sticky", Integer, nullable=False, default=0),
)

field_data_body = Table(
    "field_data_body", metadata,
    Column("entity_type", String(128), primary_key=True, default="node"),
    Column("bundle", String(128), nullable=False, default=""),
    Column("deleted", SmallInteger, primary_key=True, default=0),
    Column("entity_id", Integer, primary_key=True),
    Column("revision_id", Integer),
    Column("language", String(32), primary_key=True, default="und"),
    Column("delta", Integer, primary_key=True, default=0),
    Column("body_value", Text),
    Column("body_summary", Text),
    Column("body_format", String(255)),
)

url_alias = Table(
    "url_alias", metadata,
    Column("pid", Integer, primary_key=True, autoincrement=True),
    Column("source", String(255), nullable=False, default=""),
    Column("alias", String(255), nullable=False, default=""),
    Column("language", String(12), nullable=False, default="und"),
)

file_managed = Table(
    "file_managed", metadata,
    Column("fid", Integer, primary_key=True, autoincrement=True),
    Column("uid", Integer, nullable=False, default=0),
    Column("filename", String(255), nullable=False, default=""),
    Column("uri", String(255), nullable=False, default=""),
    Column("filemime", String(255), nullable=False, default=""),
    Column("filesize", Integer, nullable=False, default=0),
    # 0 = temporary (removed on cron), 1 = permanent
    Column("status", SmallInteger, nullable=False, default=0),
    Column("timestamp", Integer, nullable=False, default=0),
)

users = Table(
    "users", metadata,
    Column("uid", Integer, primary_key=True),
    Column("name", String(60), nullable=False, default=""),
    Column("pass", String(128), nullable=False, default=""),
    Column("mail", String(254), default=""),
    Column("created", Integer, nullable=False, default=0),
    # 1 = active, 0 = blocked
    Column("status", SmallInteger, nullable=False, default=0),
)

users_roles = Table(
    "users_roles", metadata,
    Column("uid", Integer, primary_key=True, default=0),
    Column("rid", Integer, primary_key=True, default=0),
)
