"""Scoped suspension of expensive WordPress bookkeeping during an import."""

import logging

logger = logging.getLogger(__name__)


class ImportContext:
    """
    Defers term counting and comment counting and suspends cache
    invalidation for the duration of an import.

    Use as a context manager; the store's toggles are restored on every
    exit path, including exceptions and cancellation::

        with ImportContext(store):
            runner.process_pages()
    """

    def __init__(self, store):
        """
        Args:
            store: WordPressStore whose toggles are switched
        """
        self.store = store
        self.active = False

    def begin(self) -> None:
        """Suspend bunches of stuff in the target store."""
        self.store.defer_term_counting(True)
        self.store.defer_comment_counting(True)
        self.store.suspend_cache_invalidation(True)
        self.active = True
        logger.debug("Deferred term counting, comment counting and cache invalidation")

    def end(self) -> None:
        """Re-enable everything and refresh what was deferred."""
        if not self.active:
            return
        self.active = False
        try:
            self.store.suspend_cache_invalidation(False)
            self.store.flush_cache()
            self.store.refresh_term_hierarchy()
        finally:
            try:
                self.store.defer_term_counting(False)
            finally:
                self.store.defer_comment_counting(False)
        logger.debug("Restored term counting, comment counting and cache invalidation")

    def __enter__(self) -> "ImportContext":
        self.begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end()
