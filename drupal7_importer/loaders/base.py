"""Base sink interface for the WordPress target."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from ..exceptions import SinkWriteError
from ..models.record import EntityRecord, MigrationResult, RecordStatus
from .store import WordPressStore

logger = logging.getLogger(__name__)


class BaseSink(ABC):
    """
    Base class for record sinks.

    Sinks write transformed records into WordPress. The primary row takes
    the record's ``fields``; every origin field is stored next to it as a
    ``_drupal_*`` metadata entry, in the same transaction.
    """

    # Metadata key holding the Drupal id, used to detect earlier imports.
    origin_key: str = ""

    def __init__(self, store: WordPressStore):
        """
        Initialize the sink.

        Args:
            store: WordPress data layer
        """
        self.store = store

    @abstractmethod
    def write(self, record: EntityRecord) -> int:
        """
        Write a record and its metadata.

        Returns:
            ID assigned by WordPress

        Raises:
            SinkWriteError: If WordPress would reject the record
        """
        pass

    def insert(self, record: EntityRecord) -> MigrationResult:
        """
        Insert a record.

        Args:
            record: Transformed record

        Returns:
            MigrationResult indicating success/failure
        """
        record_id = self.record_id(record)
        try:
            target_id = self.write(record)
        except SinkWriteError as e:
            record.status = RecordStatus.FAILED
            return MigrationResult(
                record_id=record_id,
                success=False,
                error=str(e),
                error_code=e.code,
            )

        record.target_id = target_id
        record.status = RecordStatus.LOADED
        return MigrationResult(
            record_id=record_id,
            target_id=target_id,
            success=True,
            loaded_at=datetime.utcnow(),
        )

    def update(self, record: EntityRecord) -> MigrationResult:
        """Patch an existing record. Only posts support it."""
        return MigrationResult(
            record_id=self.record_id(record),
            success=False,
            error=f"{type(self).__name__} does not support updates",
            error_code="unsupported",
        )

    def close(self) -> None:
        """Release anything the sink holds open."""
        pass

    def exists(self, record: EntityRecord) -> Optional[int]:
        """WordPress ID of an earlier import of ``record``, if any."""
        if not self.origin_key:
            return None
        value = record.origin.get(self.origin_key.lstrip("_"))
        if value is None:
            return None
        return self.find_by_origin(value)

    def find_by_origin(self, value: Any) -> Optional[int]:
        return self.store.find_post_id_by_meta(self.origin_key, value)

    def record_id(self, record: EntityRecord) -> Any:
        """Identifier of the record in logs and reports."""
        if record.target_id:
            return record.target_id
        return record.origin.get(self.origin_key.lstrip("_"))

    def write_post_meta(self, conn, post_id: int, record: EntityRecord, extra: Optional[List] = None) -> None:
        for key, value in record.meta_items() + list(extra or []):
            self.store.add_post_meta(conn, post_id, key, value)

    @staticmethod
    def failure_payload(record: EntityRecord, result: MigrationResult) -> Dict[str, Any]:
        """Error entry with the full item, for logs and run reports."""
        return {
            "record_id": result.record_id,
            "error": result.error,
            "error_code": result.error_code,
            "item": record.to_dict(),
        }
