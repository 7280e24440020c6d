"""Source database table extractor for row migration."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseExtractor
from ..db.schema import TableSpec
from ..db.upsert import count_rows
from ..errors import SourceUnavailable
from ..models.record import RowRecord

logger = logging.getLogger(__name__)


class TableExtractor(BaseExtractor):
    """Reads every row of one table, ordered by primary key."""

    def __init__(self, engine: Engine, spec: TableSpec):
        """
        Initialize the table extractor.

        Args:
            engine: Source database engine
            spec: Table to read
        """
        super().__init__()
        self.engine = engine
        self.spec = spec

    @property
    def source_name(self) -> str:
        return f"table {self.spec.name}"

    def count(self) -> int:
        """Count rows in the source table."""
        try:
            return count_rows(self.engine, self.spec)
        except SQLAlchemyError as e:
            raise SourceUnavailable(f"Cannot count rows in {self.spec.name}: {e}") from e

    def read_records(self) -> List[RowRecord]:
        table = self.spec.table
        key = table.c[self.spec.key_column]

        try:
            with self.engine.connect() as connection:
                rows = connection.execute(select(table).order_by(key)).mappings().all()
        except SQLAlchemyError as e:
            raise SourceUnavailable(f"Cannot query table {self.spec.name}: {e}") from e

        return [
            RowRecord(
                table_name=self.spec.name,
                primary_key=row[self.spec.key_column],
                column_values=dict(row),
            )
            for row in rows
        ]
