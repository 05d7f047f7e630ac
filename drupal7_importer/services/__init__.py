"""Service layer: parsing, transforms and validation of records."""

from .job_context import ImportContext
from .lookup import AuthorLookupCache
from .parser import BaseItemParser, ImageParser, PostContentParser, PostParser, UserParser
from .progress import LoggingProgress, ProgressReporter
from .registry import ExtensionPoint, TransformRegistry
from .transforms import register_default_transforms
from .validator import PostContentValidator

__all__ = [
    "ImportContext",
    "AuthorLookupCache",
    "BaseItemParser",
    "PostParser",
    "ImageParser",
    "UserParser",
    "PostContentParser",
    "ProgressReporter",
    "LoggingProgress",
    "ExtensionPoint",
    "TransformRegistry",
    "register_default_transforms",
    "PostContentValidator",
]
