"""Base loader interface for destination systems."""

from abc import ABC, abstractmethod
import asyncio
import logging

from ..errors import describe_error
from ..models.record import MigrationRecord, TransferOutcome

logger = logging.getLogger(__name__)


class BaseLoader(ABC):
    """
    Base class for transfer workers.

    A loader reads one record from the source and writes it to the
    destination. ``transfer`` is the worker boundary: it always returns a
    TransferOutcome and never raises.
    """

    @abstractmethod
    def load_record(self, record: MigrationRecord) -> str:
        """
        Copy one record to the destination. Blocking.

        Args:
            record: Record to copy

        Returns:
            Identifier of the record in the destination

        Raises:
            Exception: any failure; converted to a failed outcome by ``transfer``
        """

    def transfer_sync(self, record: MigrationRecord) -> TransferOutcome:
        """Run ``load_record`` and turn its result into an outcome."""
        try:
            destination_id = self.load_record(record)
        except Exception as e:
            error = describe_error(e)
            logger.error(f"Failed: {record.identifier}: {error}")
            logger.debug("Transfer failure details", exc_info=True)
            return TransferOutcome.failed(record, error)

        logger.info(f"Success: {record.identifier} -> {destination_id}")
        return TransferOutcome.succeeded(record, destination_id)

    async def transfer(self, record: MigrationRecord) -> TransferOutcome:
        """Transfer one record without blocking the event loop."""
        return await asyncio.to_thread(self.transfer_sync, record)

    def close(self) -> None:
        """Release resources held by the loader."""
