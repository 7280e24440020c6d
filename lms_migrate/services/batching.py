"""Fixed-size batches with bounded concurrency and a delay between batches."""

import asyncio
import logging
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, TypeVar

from ..config import DEFAULT_BATCH_DELAY, DEFAULT_BATCH_SIZE
from ..errors import describe_error
from ..models.record import TransferOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

Worker = Callable[[T], Awaitable[TransferOutcome]]
BatchCallback = Callable[[int, List[TransferOutcome]], None]


def partition(items: Sequence[T], batch_size: int) -> Iterator[List[T]]:
    """Split items into contiguous batches, preserving order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    for i in range(0, len(items), batch_size):
        yield list(items[i:i + batch_size])


class BatchCoordinator:
    """
    Runs one worker per record, a batch at a time.

    Workers of a batch run concurrently on the event loop; the next batch
    starts only after every worker of the current one has settled, and after
    ``delay_seconds`` of sleep. The delay spans calls to ``run``: only the
    first batch a coordinator ever starts goes without it. A failing record
    never cancels its batch or stops later batches.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_seconds: float = DEFAULT_BATCH_DELAY,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        """
        Initialize the coordinator.

        Args:
            batch_size: Records per batch
            delay_seconds: Pause before every batch after the first
            sleep: Awaitable sleep, replaceable in tests
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep or asyncio.sleep
        self.batches_started = 0

    def batch_count(self, total: int) -> int:
        return (total + self.batch_size - 1) // self.batch_size

    async def run(
        self,
        records: Sequence[T],
        worker: Worker,
        on_batch_complete: Optional[BatchCallback] = None
    ) -> List[TransferOutcome]:
        """
        Process all records.

        Args:
            records: Ordered records to process
            worker: Coroutine function returning one outcome per record
            on_batch_complete: Called with (batch number, outcomes) after each batch

        Returns:
            Outcomes in input order
        """
        total = len(records)
        batches = self.batch_count(total)
        outcomes: List[TransferOutcome] = []
        start = 0

        for number, batch in enumerate(partition(records, self.batch_size), 1):
            if self.batches_started and self.delay_seconds > 0:
                logger.info(f"Waiting {self.delay_seconds:g} seconds before next batch...")
                await self._sleep(self.delay_seconds)

            logger.info(
                f"Processing batch {number}/{batches} "
                f"({start + 1}-{start + len(batch)} of {total})"
            )
            self.batches_started += 1

            # gather keeps input order regardless of completion order
            results = await asyncio.gather(
                *(worker(record) for record in batch), return_exceptions=True
            )
            batch_outcomes = [
                self._settle(record, result) for record, result in zip(batch, results)
            ]
            outcomes.extend(batch_outcomes)
            start += len(batch)

            if on_batch_complete:
                on_batch_complete(number, batch_outcomes)

        return outcomes

    @staticmethod
    def _settle(record, result) -> TransferOutcome:
        """Turn a worker that raised into a failed outcome for its record."""
        if isinstance(result, TransferOutcome):
            return result
        if isinstance(result, Exception):
            logger.error(f"Worker raised for {getattr(record, 'identifier', record)}: {result}")
            return TransferOutcome.failed(record, describe_error(result))
        raise result
