"""Services for the migration toolkit."""

from .aggregator import ResultAggregator, log_summary, write_report
from .batching import BatchCoordinator, partition
from .mime import infer_mime_type

__all__ = [
    "ResultAggregator",
    "log_summary",
    "write_report",
    "BatchCoordinator",
    "partition",
    "infer_mime_type",
]
