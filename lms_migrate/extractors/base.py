"""Base extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
import logging

from ..models.record import MigrationRecord

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Result of an extraction operation."""
    source: str
    records: List[MigrationRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def total_extracted(self) -> int:
        return len(self.records)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class BaseExtractor(ABC):
    """
    Base class for source readers.

    Extractors enumerate the records a run will process, in a stable order.
    They only read; a source that cannot be read raises SourceUnavailable.
    """

    def __init__(self):
        self._warnings: List[str] = []

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Human readable description of the source."""

    @abstractmethod
    def read_records(self) -> List[MigrationRecord]:
        """
        Read every record from the source.

        Returns:
            Records in processing order

        Raises:
            SourceUnavailable: if the source cannot be read
        """

    def extract(self) -> ExtractionResult:
        """Read the source and wrap the records with timing information."""
        self._warnings = []
        started_at = datetime.now(timezone.utc)
        records = self.read_records()

        result = ExtractionResult(
            source=self.source_name,
            records=records,
            warnings=self._warnings.copy(),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        logger.info(
            f"Found {result.total_extracted} records in {self.source_name} "
            f"({result.duration_seconds:.2f}s)"
        )
        return result

    def add_warning(self, message: str) -> None:
        """Add a warning to the extraction."""
        self._warnings.append(message)
        logger.warning(f"Extraction warning: {message}")
