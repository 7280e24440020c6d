"""Loader that copies table rows between databases."""

import logging

from sqlalchemy.engine import Engine

from .base import BaseLoader
from ..db.schema import get_table_spec
from ..db.upsert import fetch_row, upsert_row
from ..errors import TransferFailed
from ..models.record import RowRecord

logger = logging.getLogger(__name__)


class RowLoader(BaseLoader):
    """
    Reads a row by primary key from the source and upserts it into the
    destination.

    The destination row keeps the source primary key and timestamps. Each
    call writes in its own transaction, so re-running it for the same row
    leaves the destination unchanged.
    """

    def __init__(self, source: Engine, destination: Engine):
        """
        Initialize the row loader.

        Args:
            source: Source database engine
            destination: Destination database engine
        """
        self.source = source
        self.destination = destination

    def load_record(self, record: RowRecord) -> str:
        spec = get_table_spec(record.table_name)

        with self.source.connect() as connection:
            values = fetch_row(connection, spec, record.primary_key)

        if values is None:
            raise TransferFailed(
                f"Row {record.primary_key} no longer exists in source table {record.table_name}"
            )

        with self.destination.begin() as connection:
            upsert_row(connection, spec, values)

        return record.identifier
