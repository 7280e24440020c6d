"""Source readers for file and row migration."""

from .base import BaseExtractor, ExtractionResult
from .manifest_extractor import ManifestExtractor
from .table_extractor import TableExtractor

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "ManifestExtractor",
    "TableExtractor",
]
