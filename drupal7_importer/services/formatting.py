"""Value coercion helpers shared by parsers, transforms and sinks."""

import re
import secrets
import string
import unicodedata
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

WP_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
EPOCH = "1970-01-01 00:00:00"

_PASSWORD_CHARS = string.ascii_letters + string.digits


def absint(value: Any) -> int:
    """
    Coerce to a non-negative integer.

    Negative and non-numeric input becomes 0.
    """
    if value is None or isinstance(value, bool):
        return int(bool(value))
    try:
        number = int(value)
    except (TypeError, ValueError):
        try:
            number = int(float(str(value).strip()))
        except (TypeError, ValueError, OverflowError):
            return 0
    return max(number, 0)


def to_text(value: Any) -> str:
    """Coerce to a string; ``None`` becomes an empty string."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def to_wp_datetime(value: Any) -> str:
    """
    Format a Unix timestamp as ``YYYY-MM-DD HH:MM:SS`` (UTC).

    Strings that already hold a date are re-parsed and re-emitted, so
    formatting a value twice gives the same result.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.strftime(WP_DATETIME_FORMAT)

    if isinstance(value, str):
        stripped = value.strip()
        if stripped and not stripped.lstrip("-").isdigit():
            try:
                return to_wp_datetime(date_parser.parse(stripped))
            except (ValueError, OverflowError):
                return EPOCH
        value = stripped

    timestamp = absint(value)
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(WP_DATETIME_FORMAT)
    except (OverflowError, OSError, ValueError):
        return EPOCH


def sanitize_title(title: str) -> str:
    """Lowercase, ASCII, dash-separated slug in the style of WordPress."""
    title = unicodedata.normalize("NFKD", to_text(title))
    title = title.encode("ascii", "ignore").decode("ascii").lower()
    title = re.sub(r"<[^>]*>", "", title)
    title = re.sub(r"&[a-z0-9#]+;", "", title)
    title = re.sub(r"[^a-z0-9_\s-]", "", title)
    title = re.sub(r"[\s_-]+", "-", title)
    return title.strip("-")


def generate_password(length: int = 12) -> str:
    """Random alphanumeric password."""
    return "".join(secrets.choice(_PASSWORD_CHARS) for _ in range(length))
