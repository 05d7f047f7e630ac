"""Sinks and data access for the WordPress target."""

from .base import BaseSink
from .media import MediaFetcher
from .store import WordPressStore
from .wordpress import AttachmentSink, PostSink, UserSink
from .wp_schema import WordPressTables, build_wp_tables

__all__ = [
    "BaseSink",
    "MediaFetcher",
    "WordPressStore",
    "PostSink",
    "AttachmentSink",
    "UserSink",
    "WordPressTables",
    "build_wp_tables",
]
