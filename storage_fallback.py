"""
Storage backend selection for The Vault
Probes the configured database on startup and falls back to in-memory SQLite
when it cannot be reached
"""

import logging
from typing import Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

MEMORY_DATABASE_URI = 'sqlite://'

STORAGE_MODE_DATABASE = 'database'
STORAGE_MODE_MEMORY = 'memory'


def is_memory_uri(database_uri: str) -> bool:
    """True for SQLite URIs that never touch disk"""
    return database_uri in ('sqlite://', 'sqlite:///:memory:')


def probe_database(database_uri: str, timeout: int = 5) -> bool:
    """Open one connection and run SELECT 1, return False on any driver error"""
    connect_args = {}
    if not database_uri.startswith('sqlite'):
        connect_args['connect_timeout'] = timeout

    engine = None
    try:
        engine = create_engine(database_uri, connect_args=connect_args)
        with engine.connect() as conn:
            conn.execute(text('SELECT 1'))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection error (using in-memory fallback): {e}")
        return False
    except Exception as e:
        # Missing DBAPI drivers raise ImportError/ModuleNotFoundError from create_engine
        logger.error(f"Database driver unavailable (using in-memory fallback): {e}")
        return False
    finally:
        if engine is not None:
            engine.dispose()


def resolve_database_uri(database_uri: str) -> Tuple[str, str]:
    """
    Pick the URI Flask-SQLAlchemy should bind to.

    Returns:
        (uri, storage_mode) where storage_mode is 'database' or 'memory'
    """
    if is_memory_uri(database_uri):
        return database_uri, STORAGE_MODE_MEMORY

    # Local SQLite files are created on demand and resolved against the instance path
    if database_uri.startswith('sqlite'):
        return database_uri, STORAGE_MODE_DATABASE

    if probe_database(database_uri):
        logger.info("Database connected successfully")
        return database_uri, STORAGE_MODE_DATABASE

    logger.warning("Falling back to in-memory storage; data will not survive a restart")
    return MEMORY_DATABASE_URI, STORAGE_MODE_MEMORY
