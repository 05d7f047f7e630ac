"""Lazy lookup table from Drupal user ids to WordPress user ids."""

import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class AuthorLookupCache:
    """
    Maps Drupal user ids to WordPress user ids.

    The table is loaded on first use and then kept for the lifetime of the
    owning job. Users imported after the first lookup are not visible,
    so users have to be imported before posts.
    """

    def __init__(self, loader: Callable[[], Dict[int, int]], default: int = 0):
        """
        Initialize the cache.

        Args:
            loader: Callable returning the full ``{drupal_uid: wp_user_id}`` table
            default: User id returned for unmapped Drupal ids
        """
        self._loader = loader
        self._table: Optional[Dict[int, int]] = None
        self.default = default
        self.loads = 0

    @property
    def loaded(self) -> bool:
        return self._table is not None

    def _ensure_loaded(self) -> Dict[int, int]:
        if self._table is None:
            self._table = dict(self._loader())
            self.loads += 1
            if not self._table:
                logger.warning(
                    "No migrated users found; post authors will fall back to "
                    f"{self.default}. Import users before posts."
                )
            else:
                logger.info(f"Loaded {len(self._table)} Drupal -> WordPress user ids")
        return self._table

    def resolve(self, drupal_uid: int) -> int:
        """WordPress user id for ``drupal_uid``, or the default if unmapped."""
        return self._ensure_loaded().get(drupal_uid, self.default)

    def __len__(self) -> int:
        return len(self._ensure_loaded())
