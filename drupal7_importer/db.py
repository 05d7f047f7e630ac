"""Database engine construction."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, NoSuchModuleError

from .exceptions import ConfigurationError
from .models.config import DatabaseConfig

logger = logging.getLogger(__name__)


def create_db_engine(db_config: DatabaseConfig, **kwargs) -> Engine:
    """
    Create an engine for a configured database.

    Args:
        db_config: Connection descriptor
        **kwargs: Extra ``create_engine`` options

    Returns:
        SQLAlchemy Engine (not yet connected)
    """
    kwargs.setdefault("pool_pre_ping", True)
    try:
        url = db_config.sqlalchemy_url()
        engine = create_engine(url, **kwargs)
    except (ArgumentError, NoSuchModuleError) as e:
        raise ConfigurationError(f"Invalid database configuration: {e}") from e

    logger.debug(f"Created engine for {url.render_as_string(hide_password=True)}")
    return engine
