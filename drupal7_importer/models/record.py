"""Record models for migration data."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum
from datetime import datetime

# Every column selected from Drupal that identifies the origin row carries
# this prefix. Such fields end up as ``_drupal_*`` metadata in WordPress.
ORIGIN_PREFIX = "drupal_"


class RecordStatus(str, Enum):
    """Status of a record during migration."""
    PENDING = "pending"
    PARSED = "parsed"
    TRANSFORMED = "transformed"
    LOADED = "loaded"
    FAILED = "failed"
    SKIPPED = "skipped"


def is_origin_field(name: str) -> bool:
    """Check whether a field name belongs to the origin namespace."""
    return name.startswith(ORIGIN_PREFIX)


def meta_key_for(name: str) -> str:
    """Metadata key under which an origin field is stored (``drupal_nid`` -> ``_drupal_nid``)."""
    return f"_{name}"


@dataclass
class EntityRecord:
    """
    A single entity on its way from Drupal to WordPress.

    Fields are kept in three separate maps:

    - ``fields``: native WordPress fields (``post_title``, ``user_login``, ...)
    - ``origin``: Drupal identifiers, always ``drupal_`` prefixed
    - ``relations``: hydrated nested data (url aliases, content images)
    """
    kind: str
    fields: Dict[str, Any] = field(default_factory=dict)
    origin: Dict[str, Any] = field(default_factory=dict)
    relations: Dict[str, Any] = field(default_factory=dict)
    target_id: Optional[int] = None
    status: RecordStatus = RecordStatus.PENDING
    created_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_row(
        cls,
        kind: str,
        row: Dict[str, Any],
        relation_keys: Tuple[str, ...] = ()
    ) -> "EntityRecord":
        """
        Split a raw row into origin fields, target fields and relations.

        Args:
            kind: Entity kind the row belongs to
            row: Raw row as returned by a row source
            relation_keys: Keys that hold nested relations rather than values

        Returns:
            EntityRecord with the row's values sorted into the right map
        """
        record = cls(kind=kind)
        for key, value in row.items():
            if key in relation_keys:
                record.relations[key] = value
            elif is_origin_field(key):
                record.origin[key] = value
            else:
                record.fields[key] = value
        return record

    def get(self, name: str, default: Any = None) -> Any:
        """Get a field value from whichever namespace owns ``name``."""
        if is_origin_field(name):
            return self.origin.get(name, default)
        return self.fields.get(name, default)

    def set(self, name: str, value: Any) -> None:
        """Set a field value, routing origin names to ``origin``."""
        if is_origin_field(name):
            self.origin[name] = value
        else:
            self.fields[name] = value

    def __getitem__(self, name: str) -> Any:
        if is_origin_field(name):
            return self.origin[name]
        return self.fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: str) -> bool:
        return name in self.origin or name in self.fields

    def meta_items(self) -> List[Tuple[str, Any]]:
        """Origin fields as ``(meta_key, value)`` pairs in insertion order."""
        return [(meta_key_for(name), value) for name, value in self.origin.items()]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind,
            "fields": self.fields,
            "origin": self.origin,
            "relations": self.relations,
            "target_id": self.target_id,
            "status": self.status.value,
        }


@dataclass
class MigrationResult:
    """Result of handing a record to a sink."""
    record_id: Any
    target_id: Optional[int] = None  # ID assigned by WordPress
    success: bool = False
    changed: bool = True
    error: Optional[str] = None
    error_code: Optional[str] = None
    loaded_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "record_id": self.record_id,
            "target_id": self.target_id,
            "success": self.success,
            "changed": self.changed,
            "error": self.error,
            "error_code": self.error_code,
            "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
        }
