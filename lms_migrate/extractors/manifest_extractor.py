"""JSON manifest extractor for file migration."""

import json
import logging
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from .base import BaseExtractor
from ..errors import SourceUnavailable
from ..models.manifest import ManifestEntry
from ..models.record import FileRecord

logger = logging.getLogger(__name__)


class ManifestExtractor(BaseExtractor):
    """
    Reads the file manifest exported from the old storage account.

    The manifest is a JSON array of
    ``{name, key, customId, url, size, uploadedAt}`` objects.
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        """
        Initialize the manifest extractor.

        Args:
            path: Path to the JSON manifest
            encoding: File encoding
        """
        super().__init__()
        self.path = Path(path)
        self.encoding = encoding

    @property
    def source_name(self) -> str:
        return str(self.path)

    def read_records(self) -> List[FileRecord]:
        """Parse and validate every manifest entry."""
        if not self.path.is_file():
            raise SourceUnavailable(f"File not found: {self.path.resolve()}")

        try:
            with open(self.path, encoding=self.encoding) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise SourceUnavailable(f"Cannot read manifest {self.path}: {e}") from e

        if isinstance(data, dict):
            # Some exports wrap the rows in an object
            data = data.get("files") or data.get("rows") or data.get("data")

        if not isinstance(data, list):
            raise SourceUnavailable(f"Manifest {self.path} must contain a JSON array of files")

        records = []
        for idx, item in enumerate(data):
            try:
                entry = ManifestEntry.model_validate(item)
            except ValidationError as e:
                raise SourceUnavailable(f"Invalid manifest entry #{idx}: {e}") from e
            records.append(entry.to_record())

        self._warn_duplicates(records)
        return records

    def _warn_duplicates(self, records: List[FileRecord]) -> None:
        seen = set()
        for record in records:
            if record.source_url in seen:
                self.add_warning(f"Duplicate URL in manifest: {record.source_url}")
            seen.add(record.source_url)
