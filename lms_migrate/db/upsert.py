"""Generic per-table upsert driven by ``TableSpec``."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine

from .schema import TableSpec

logger = logging.getLogger(__name__)

_ON_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_row(connection: Connection, spec: TableSpec, values: Dict[str, Any]) -> None:
    """
    Insert a row, or update the existing row matched by the conflict columns.

    Primary key and timestamps are written exactly as given.

    Args:
        connection: Open connection on the destination database
        spec: Table being written
        values: Source row (extra keys are ignored)
    """
    row = spec.prepare(values)
    insert_factory = _ON_CONFLICT_INSERTS.get(connection.dialect.name)

    if insert_factory is None:
        _upsert_select_first(connection, spec, row)
        return

    stmt = insert_factory(spec.table).values(**row)
    update_columns = spec.update_columns
    if update_columns:
        stmt = stmt.on_conflict_do_update(
            index_elements=list(spec.conflict_columns),
            set_={name: stmt.excluded[name] for name in update_columns},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(spec.conflict_columns))

    connection.execute(stmt)


def _upsert_select_first(connection: Connection, spec: TableSpec, row: Dict[str, Any]) -> None:
    """Fallback for dialects without INSERT .. ON CONFLICT."""
    table = spec.table
    match = and_(*[table.c[name] == row[name] for name in spec.conflict_columns])

    existing = connection.execute(select(table.c[spec.key_column]).where(match)).first()
    if existing is None:
        connection.execute(table.insert().values(**row))
    else:
        connection.execute(
            table.update()
            .where(match)
            .values(**{name: row[name] for name in spec.update_columns})
        )


def fetch_row(connection: Connection, spec: TableSpec, primary_key: Any) -> Optional[Dict[str, Any]]:
    """Read one row by primary key, or None when it does not exist."""
    table = spec.table
    result = connection.execute(
        select(table).where(table.c[spec.key_column] == primary_key)
    ).mappings().first()
    return dict(result) if result is not None else None


def count_rows(engine: Engine, spec: TableSpec) -> int:
    """Count rows of one table."""
    with engine.connect() as connection:
        return int(connection.execute(select(func.count()).select_from(spec.table)).scalar_one())
