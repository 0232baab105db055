"""
PostgreSQL connection helper for pixdrop.

This module provides a simple connection function for PostgreSQL access.
Uses psycopg for the connection.
"""

import psycopg
from loguru import logger

from pixdrop_core.config import settings
from pixdrop_core.domain.exceptions import StorageUnavailable


def get_db_connection(dsn: str | None = None):
    """
    Get a PostgreSQL database connection.

    Returns a context manager that can be used with 'with' statement.
    The connection is automatically closed when the context exits.

    Usage:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM image_jobs")

    Args:
        dsn: Optional connection string. Defaults to settings.POSTGRES_DSN.

    Returns:
        psycopg.Connection: A PostgreSQL connection.

    Raises:
        StorageUnavailable: If the database cannot be reached.
    """
    try:
        conn = psycopg.connect(dsn or settings.POSTGRES_DSN)
        logger.debug("Connected to PostgreSQL")
        return conn
    except psycopg.OperationalError as e:
        logger.error(f"Failed to connect to PostgreSQL: {e}")
        raise StorageUnavailable("Job storage temporarily unavailable", cause=e) from e
