"""Data models for the migration toolkit."""

from .record import (
    FileRecord,
    RowRecord,
    MigrationRecord,
    TransferOutcome,
)
from .report import (
    MigrationKind,
    MigrationReport,
    TableVerification,
)
from .manifest import ManifestEntry

__all__ = [
    "FileRecord",
    "RowRecord",
    "MigrationRecord",
    "TransferOutcome",
    "MigrationKind",
    "MigrationReport",
    "TableVerification",
    "ManifestEntry",
]
