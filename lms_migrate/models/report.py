"""Migration report models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .record import TransferOutcome


class MigrationKind(str, Enum):
    """Which pipeline produced a report."""
    FILES = "files"
    ROWS = "rows"


@dataclass
class TableVerification:
    """Source vs destination row count for one table."""
    table: str
    source_count: int
    destination_count: int

    @property
    def match(self) -> bool:
        return self.source_count == self.destination_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "sourceCount": self.source_count,
            "destinationCount": self.destination_count,
            "match": self.match,
        }


@dataclass
class MigrationReport:
    """Aggregated outcome of one migration run."""
    kind: MigrationKind
    migrated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcomes: List[TransferOutcome] = field(default_factory=list)
    id_mapping: Dict[str, str] = field(default_factory=dict)
    tables: List[TableVerification] = field(default_factory=list)
    # Source ids that succeeded more than once; the mapping keeps the last.
    duplicate_ids: List[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def failed_outcomes(self) -> List[TransferOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def mismatched_tables(self) -> List[TableVerification]:
        return [t for t in self.tables if not t.match]

    @property
    def exit_code(self) -> int:
        """0 when every record succeeded, 1 otherwise."""
        return 1 if self.failure_count else 0

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.migrated_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON report layout."""
        if self.kind == MigrationKind.FILES:
            return {
                "migratedAt": self.migrated_at.isoformat(),
                "totalFiles": self.total,
                "successful": self.success_count,
                "failed": self.failure_count,
                "results": [o.to_dict() for o in self.outcomes],
                "urlMapping": dict(self.id_mapping),
            }

        return {
            "migratedAt": self.migrated_at.isoformat(),
            "totalRows": self.total,
            "successful": self.success_count,
            "failed": self.failure_count,
            "results": [o.to_dict() for o in self.outcomes],
            "keyMapping": dict(self.id_mapping),
            "tables": [t.to_dict() for t in self.tables],
        }
