"""Progress reporting for long-running jobs."""

import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Progress sink ticked once per processed item.

    The base class records the counts and reports nothing.
    """

    def __init__(self):
        self.total = 0
        self.current = 0

    def start(self, total: int, label: str = "") -> None:
        self.total = total
        self.current = 0

    def tick(self, amount: int = 1) -> None:
        self.current += amount

    def finish(self) -> None:
        pass


class LoggingProgress(ProgressReporter):
    """Logs ``current/total`` every ``every`` items and at the end."""

    def __init__(self, every: int = 100, log: Optional[logging.Logger] = None):
        super().__init__()
        self.every = max(1, every)
        self.label = ""
        self._log = log or logger
        self._started = 0.0

    def start(self, total: int, label: str = "") -> None:
        super().start(total, label)
        self.label = label
        self._started = time.monotonic()
        self._log.info(f"{label}: 0/{total}")

    def tick(self, amount: int = 1) -> None:
        before = self.current
        super().tick(amount)
        if self.current // self.every != before // self.every:
            self._report()

    def finish(self) -> None:
        self._report()

    def _report(self) -> None:
        elapsed = time.monotonic() - self._started
        rate = self.current / elapsed if elapsed > 0 else 0.0
        self._log.info(f"{self.label}: {self.current}/{self.total} ({rate:.1f}/s)")
