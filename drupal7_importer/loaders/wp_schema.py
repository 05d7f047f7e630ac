"""SQLAlchemy Core definitions of the WordPress tables the importer touches."""

from dataclasses import dataclass

from sqlalchemy import BigInteger, Column, Integer, MetaData, String, Table, Text

# BIGINT primary keys only autoincrement on SQLite as INTEGER.
_ID = BigInteger().with_variant(Integer, "sqlite")


@dataclass
class WordPressTables:
    """The tables for one table prefix."""
    metadata: MetaData
    posts: Table
    postmeta: Table
    users: Table
    usermeta: Table
    term_taxonomy: Table
    term_relationships: Table
    comments: Table
    options: Table


def build_wp_tables(prefix: str = "wp_") -> WordPressTables:
    """
    Describe the WordPress tables for ``prefix``.

    Only columns written or read by the importer are declared; the real
    tables have a few more, all with defaults.
    """
    metadata = MetaData()

    posts = Table(
        f"{prefix}posts", metadata,
        Column("ID", _ID, primary_key=True, autoincrement=True),
        Column("post_author", BigInteger, nullable=False, default=0),
        Column("post_date", String(19), nullable=False),
        Column("post_date_gmt", String(19), nullable=False),
        Column("post_content", Text, nullable=False),
        Column("post_title", Text, nullable=False),
        Column("post_excerpt", Text, nullable=False),
        Column("post_status", String(20), nullable=False, default="publish"),
        Column("comment_status", String(20), nullable=False, default="open"),
        Column("ping_status", String(20), nullable=False, default="open"),
        Column("post_password", String(255), nullable=False, default=""),
        Column("post_name", String(200), nullable=False, default=""),
        Column("to_ping", Text, nullable=False, default=""),
        Column("pinged", Text, nullable=False, default=""),
        Column("post_modified", String(19), nullable=False),
        Column("post_modified_gmt", String(19), nullable=False),
        Column("post_content_filtered", Text, nullable=False, default=""),
        Column("post_parent", BigInteger, nullable=False, default=0),
        Column("guid", String(255), nullable=False, default=""),
        Column("menu_order", Integer, nullable=False, default=0),
        Column("post_type", String(20), nullable=False, default="post"),
        Column("post_mime_type", String(100), nullable=False, default=""),
        Column("comment_count", BigInteger, nullable=False, default=0),
    )

    postmeta = Table(
        f"{prefix}postmeta", metadata,
        Column("meta_id", _ID, primary_key=True, autoincrement=True),
        Column("post_id", BigInteger, nullable=False, default=0, index=True),
        Column("meta_key", String(255), index=True),
        Column("meta_value", Text),
    )

    users = Table(
        f"{prefix}users", metadata,
        Column("ID", _ID, primary_key=True, autoincrement=True),
        Column("user_login", String(60), nullable=False, default=""),
        Column("user_pass", String(255), nullable=False, default=""),
        Column("user_nicename", String(50), nullable=False, default=""),
        Column("user_email", String(100), nullable=False, default=""),
        Column("user_url", String(100), nullable=False, default=""),
        Column("user_registered", String(19), nullable=False),
        Column("user_activation_key", String(255), nullable=False, default=""),
        Column("user_status", Integer, nullable=False, default=0),
        Column("display_name", String(250), nullable=False, default=""),
    )

    usermeta = Table(
        f"{prefix}usermeta", metadata,
        Column("umeta_id", _ID, primary_key=True, autoincrement=True),
        Column("user_id", BigInteger, nullable=False, default=0, index=True),
        Column("meta_key", String(255), index=True),
        Column("meta_value", Text),
    )

    term_taxonomy = Table(
        f"{prefix}term_taxonomy", metadata,
        Column("term_taxonomy_id", _ID, primary_key=True, autoincrement=True),
        Column("term_id", BigInteger, nullable=False, default=0),
        Column("taxonomy", String(32), nullable=False, default=""),
        Column("description", Text, nullable=False, default=""),
        Column("parent", BigInteger, nullable=False, default=0),
        Column("count", BigInteger, nullable=False, default=0),
    )

    term_relationships = Table(
        f"{prefix}term_relationships", metadata,
        Column("object_id", BigInteger, primary_key=True, default=0),
        Column("term_taxonomy_id", BigInteger, primary_key=True, default=0),
        Column("term_order", Integer, nullable=False, default=0),
    )

    comments = Table(
        f"{prefix}comments", metadata,
        Column("comment_ID", _ID, primary_key=True, autoincrement=True),
        Column("comment_post_ID", BigInteger, nullable=False, default=0, index=True),
        Column("comment_approved", String(20), nullable=False, default="1"),
        Column("comment_content", Text, nullable=False, default=""),
    )

    options = Table(
        f"{prefix}options", metadata,
        Column("option_id", _ID, primary_key=True, autoincrement=True),
        Column("option_name", String(191), nullable=False, unique=True, default=""),
        Column("option_value", Text, nullable=False),
        Column("autoload", String(20), nullable=False, default="yes"),
    )

    return WordPressTables(
        metadata=metadata,
        posts=posts,
        postmeta=postmeta,
        users=users,
        usermeta=usermeta,
        term_taxonomy=term_taxonomy,
        term_relationships=term_relationships,
        comments=comments,
        options=options,
    )
