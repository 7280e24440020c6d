"""SQLAlchemy engines and schema checks for source and destination databases."""

import logging
from typing import List

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import SchemaMissing
from .schema import MIGRATION_ORDER, metadata

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """
    Normalize postgres URLs to SQLAlchemy's psycopg driver form.
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def create_db_engine(url: str, pool_size: int = 5) -> Engine:
    """
    Create an engine for one side of the migration.

    Args:
        url: Database URL (``postgres://`` URLs are accepted)
        pool_size: Connections kept open, at least the batch size

    Returns:
        SQLAlchemy engine
    """
    url = normalize_database_url(url)
    options = {"pool_pre_ping": True}
    if url.startswith("postgresql"):
        options.update(pool_size=max(pool_size, 1), max_overflow=pool_size)
    return create_engine(url, **options)


def check_connection(engine: Engine) -> None:
    """Open and close one connection, raising on failure."""
    with engine.connect():
        pass


def missing_tables(engine: Engine) -> List[str]:
    """Names of application tables that do not exist in the database."""
    existing = set(inspect(engine).get_table_names())
    return [name for name in MIGRATION_ORDER if name not in existing]


def ensure_schema(engine: Engine, create_missing: bool = True) -> List[str]:
    """
    Make sure every application table exists in the destination.

    Missing tables are created once from the known table definitions. Existing
    tables are never altered or dropped.

    Returns:
        Names of tables that were created

    Raises:
        SchemaMissing: if tables are missing and could not be created
    """
    missing = missing_tables(engine)
    if not missing:
        return []

    if not create_missing:
        raise SchemaMissing(missing)

    logger.warning(f"Schema not found for {len(missing)} table(s): {', '.join(missing)}. Creating them...")
    try:
        metadata.create_all(engine, tables=[metadata.tables[name] for name in missing], checkfirst=True)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create schema automatically: {e}")
        raise SchemaMissing(missing) from e

    still_missing = missing_tables(engine)
    if still_missing:
        raise SchemaMissing(still_missing)

    logger.info(f"Created {len(missing)} table(s)")
    return missing
