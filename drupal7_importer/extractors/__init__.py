"""Row sources over the Drupal 7 database (and WordPress, for validation)."""

from .base import BaseRowSource
from .posts import DrupalNodeSource
from .images import DrupalFileSource
from .users import DrupalUserSource
from .wordpress import WordPressPostSource

__all__ = [
    "BaseRowSource",
    "DrupalNodeSource",
    "DrupalFileSource",
    "DrupalUserSource",
    "WordPressPostSource",
]
