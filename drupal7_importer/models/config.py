"""Importer configuration models."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.engine import URL, make_url

from ..exceptions import ConfigurationError

DEFAULT_DRIVER = "mysql+mysqlconnector"

# Drupal role id -> WordPress role name.
DEFAULT_ROLE_MAPPING: Dict[int, str] = {
    1: "subscriber",  # anonymous user
    2: "subscriber",  # authenticated user
    3: "administrator",  # administrator
    4: "editor",  # content editor
    5: "subscriber",  # sales and marketing
    6: "subscriber",  # customer services
    7: "subscriber",  # product owner
    8: "subscriber",  # PR Editor
    9: "subscriber",  # subscriber
}


class DatabaseConfig(BaseModel):
    """Connection descriptor for a MySQL database (or a full SQLAlchemy URL)."""
    url: Optional[str] = None
    host: str = "localhost"
    port: Optional[int] = None
    user: str = "root"
    password: str = ""
    name: str = ""
    driver: str = DEFAULT_DRIVER

    def sqlalchemy_url(self) -> URL:
        """Build the SQLAlchemy URL, preferring an explicit ``url``."""
        if self.url:
            return make_url(self.url)
        if not self.name:
            raise ConfigurationError("Database name is required")
        return URL.create(
            drivername=self.driver,
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.name,
        )

    def describe(self) -> str:
        """Connection string with the password masked, for log output."""
        return self.sqlalchemy_url().render_as_string(hide_password=True)


class ImporterConfig(BaseModel):
    """
    Top-level configuration.

    Loaded from an optional JSON file, then environment variables. CLI
    flags override both.
    """
    wordpress_db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    drupal_db: Optional[DatabaseConfig] = None
    drupal_db_name: str = "drupal"
    table_prefix: str = "wp_"

    # Media
    uploads_path: str = "wp-content/uploads"
    uploads_url: str = "/wp-content/uploads"
    import_path: Optional[str] = None  # Defaults to <uploads_path>/import/
    origin_files_url: Optional[str] = None  # e.g. https://www.example.com/sites/default/files/
    download_timeout: float = 30.0

    # Posts validator
    first_party_host: str = "www.igamingbusiness.com"
    origin_path_prefixes: List[str] = Field(default_factory=lambda: [
        "/sites/default/files/",
        "/sites/igamingbusiness.com/files/",
    ])

    # Users
    role_mapping: Dict[int, str] = Field(default_factory=lambda: dict(DEFAULT_ROLE_MAPPING))
    default_role: str = "subscriber"
    anonymize_emails: bool = False

    # Execution
    per_page: int = 100
    skip_existing: bool = True
    site_url: str = ""

    @property
    def resolved_import_path(self) -> Path:
        if self.import_path:
            return Path(self.import_path)
        return Path(self.uploads_path) / "import"

    def resolved_drupal_db(self) -> DatabaseConfig:
        """
        The Drupal connection descriptor.

        Falls back to the WordPress credentials with the Drupal database
        name when no Drupal connection has been configured.
        """
        if self.drupal_db is not None:
            return self.drupal_db
        if self.wordpress_db.url:
            raise ConfigurationError(
                "drupal_db must be configured when wordpress_db is given as a URL"
            )
        return self.wordpress_db.model_copy(update={"name": self.drupal_db_name})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImporterConfig":
        """Create from dictionary representation."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "ImporterConfig":
        """
        Load configuration from a JSON file and the environment.

        Args:
            path: Optional JSON config file
            environ: Environment mapping (defaults to ``os.environ``)

        Returns:
            ImporterConfig
        """
        data: Dict[str, Any] = {}
        if path:
            if not os.path.exists(path):
                raise ConfigurationError(f"Config file not found: {path}")
            with open(path, "r", encoding="utf-8") as f:
                try:
                    data = json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Could not decode {path}: {e}") from e

        environ = os.environ if environ is None else environ
        _apply_db_env(data, "wordpress_db", "WP_DB", environ)
        if any(key.startswith("D7_DB_") for key in environ):
            _apply_db_env(data, "drupal_db", "D7_DB", environ)

        return cls.from_dict(data)


def _apply_db_env(data: Dict[str, Any], key: str, prefix: str, environ: Mapping[str, str]) -> None:
    """Overlay ``<PREFIX>_HOST`` style variables onto ``data[key]``."""
    section = dict(data.get(key) or {})
    for env_suffix, field_name in (
        ("URL", "url"),
        ("HOST", "host"),
        ("PORT", "port"),
        ("USER", "user"),
        ("PASSWORD", "password"),
        ("NAME", "name"),
    ):
        value = environ.get(f"{prefix}_{env_suffix}")
        if value:
            section[field_name] = value
    if section:
        data[key] = section
