"""Database access for row migration."""

from .schema import MIGRATION_ORDER, TABLE_SPECS, TableSpec, get_table_spec, metadata
from .session import (
    create_db_engine,
    ensure_schema,
    missing_tables,
    normalize_database_url,
)
from .upsert import count_rows, fetch_row, upsert_row

__all__ = [
    "MIGRATION_ORDER",
    "TABLE_SPECS",
    "TableSpec",
    "get_table_spec",
    "metadata",
    "create_db_engine",
    "ensure_schema",
    "missing_tables",
    "normalize_database_url",
    "count_rows",
    "fetch_row",
    "upsert_row",
]
