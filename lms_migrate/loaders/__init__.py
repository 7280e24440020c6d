"""Transfer workers for destination systems."""

from .base import BaseLoader
from .file_loader import FileLoader
from .row_loader import RowLoader

__all__ = [
    "BaseLoader",
    "FileLoader",
    "RowLoader",
]
