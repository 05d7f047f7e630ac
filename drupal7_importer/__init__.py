"""
Drupal 7 → WordPress Importer

A batched, resumable migration toolkit that moves posts, images and users
from a Drupal 7 database into a WordPress database.

Supports:
- Paginated reads over the Drupal 7 schema (nodes, files, users)
- Per-entity parsing and a priority-ordered transform registry
- Idempotent inserts with origin ids kept as WordPress metadata
- A posts validator that rewrites embedded image URLs to migrated attachments
- Deferred term/comment counting for the duration of an import
"""

__version__ = "0.1.0"
