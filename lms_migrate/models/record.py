"""Record and outcome models for migration units of work."""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union


@dataclass(frozen=True)
class FileRecord:
    """A file listed in the storage manifest."""
    name: str
    source_key: str
    source_url: str
    size_bytes: int = 0
    uploaded_at: Optional[datetime] = None
    custom_id: Optional[str] = None

    @property
    def identifier(self) -> str:
        """Identifier of the record in the source system."""
        return self.source_url

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024


@dataclass(frozen=True)
class RowRecord:
    """A row of one application table."""
    table_name: str
    primary_key: Any
    column_values: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Freeze the column mapping along with the dataclass.
        object.__setattr__(self, "column_values", MappingProxyType(dict(self.column_values)))

    @property
    def identifier(self) -> str:
        """Identifier of the record in the source system."""
        return f"{self.table_name}:{self.primary_key}"


MigrationRecord = Union[FileRecord, RowRecord]


@dataclass(frozen=True)
class TransferOutcome:
    """Result of transferring one record. Created once, never mutated."""
    record: MigrationRecord
    success: bool
    destination_id: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.success and not self.destination_id:
            raise ValueError("A successful outcome needs a destination id")
        if not self.success and (self.destination_id is not None or not self.error):
            raise ValueError("A failed outcome needs an error and no destination id")

    @classmethod
    def succeeded(cls, record: MigrationRecord, destination_id: str) -> "TransferOutcome":
        return cls(record=record, success=True, destination_id=str(destination_id))

    @classmethod
    def failed(cls, record: MigrationRecord, error: str) -> "TransferOutcome":
        return cls(record=record, success=False, error=error or "Unknown error")

    @property
    def source_id(self) -> str:
        return self.record.identifier

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the report's per-record entry."""
        if isinstance(self.record, FileRecord):
            data = {
                "oldUrl": self.record.source_url,
                "newUrl": self.destination_id,
                "success": self.success,
            }
        else:
            data = {
                "table": self.record.table_name,
                "primaryKey": self.record.primary_key,
                "success": self.success,
            }
        if self.error is not None:
            data["error"] = self.error
        return data
