"""Exceptions raised by the migration pipeline."""

from typing import Any, Dict, Optional


class MigrationError(Exception):
    """Base class for all importer errors."""


class ConfigurationError(MigrationError):
    """Raised when the importer configuration is missing or invalid."""


class SourceQueryError(MigrationError):
    """
    A query against the Drupal database failed.

    This is fatal for a run: the batch runner does not retry the page.
    """

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query


class ItemParseSkip(MigrationError):
    """Raised by a parser when a raw row cannot become a record."""

    def __init__(self, message: str = "Empty row", row: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.row = row


class SinkWriteError(MigrationError):
    """
    WordPress refused a create or update.

    Mirrors a ``WP_Error``: ``code`` is a short machine readable slug
    (``empty_content``, ``existing_user_login``, ...).
    """

    def __init__(self, code: str, message: str, item: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.item = item

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
        }
