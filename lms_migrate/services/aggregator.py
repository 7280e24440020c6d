"""Collects transfer outcomes and produces the migration report."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sqlalchemy.engine import Engine

from ..db.schema import get_table_spec
from ..db.upsert import count_rows
from ..models.record import TransferOutcome
from ..models.report import MigrationKind, MigrationReport, TableVerification

logger = logging.getLogger(__name__)


class ResultAggregator:
    """
    Accumulates outcomes in batch order.

    Keeps running success/failure counters for progress logging and owns the
    outcomes for the rest of the run.
    """

    def __init__(self, kind: MigrationKind, expected_total: Optional[int] = None):
        """
        Initialize the aggregator.

        Args:
            kind: Pipeline producing the outcomes
            expected_total: Number of records the run will process, for progress
        """
        self.report = MigrationReport(kind=kind)
        self.expected_total = expected_total
        self.successful = 0
        self.failed = 0

    @property
    def processed(self) -> int:
        return self.successful + self.failed

    def add(self, outcome: TransferOutcome) -> None:
        """Record one outcome."""
        self.report.outcomes.append(outcome)
        if outcome.success:
            self.successful += 1
            if outcome.source_id in self.report.id_mapping:
                self.report.duplicate_ids.append(outcome.source_id)
            self.report.id_mapping[outcome.source_id] = outcome.destination_id
        else:
            self.failed += 1

    def add_batch(self, number: int, outcomes: Iterable[TransferOutcome]) -> None:
        """Record the outcomes of one completed batch and log progress."""
        for outcome in outcomes:
            self.add(outcome)

        total = self.expected_total if self.expected_total is not None else self.processed
        logger.info(
            f"Progress: {self.processed}/{total} processed "
            f"({self.successful} successful, {self.failed} failed) after batch {number}"
        )

    def verify_counts(
        self,
        source_counts: Dict[str, int],
        destination: Engine
    ) -> List[TableVerification]:
        """
        Compare destination row counts against the source counts.

        Mismatches are logged and reported, never repaired.
        """
        logger.info("Verifying migrated data in destination database...")
        verifications = []

        for table, source_count in source_counts.items():
            destination_count = count_rows(destination, get_table_spec(table))
            verification = TableVerification(table, source_count, destination_count)
            verifications.append(verification)

            marker = "OK" if verification.match else "MISMATCH"
            log = logger.info if verification.match else logger.warning
            log(
                f"  [{marker:>8}] {table:<25} source: {source_count:>6} -> "
                f"destination: {destination_count:>6}"
            )

        self.report.tables = verifications
        return verifications

    def build_report(self) -> MigrationReport:
        """Finalize and return the report."""
        self.report.completed_at = datetime.now(timezone.utc)
        return self.report


def write_report(report: MigrationReport, path: str) -> Path:
    """Persist a report as JSON."""
    filepath = Path(path)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w") as f:
        json.dump(report.to_dict(), f, indent=2, default=str)
    logger.info(f"Results saved to: {filepath}")
    return filepath


def log_summary(report: MigrationReport, report_path: Optional[Path] = None) -> None:
    """Log the human readable summary of a run."""
    noun = "files" if report.kind == MigrationKind.FILES else "rows"

    logger.info("=" * 60)
    logger.info("Migration Summary")
    logger.info("=" * 60)
    logger.info(f"Total {noun}: {report.total}")
    logger.info(f"Successful: {report.success_count}")
    logger.info(f"Failed: {report.failure_count}")
    if report.duration_seconds is not None:
        logger.info(f"Duration: {report.duration_seconds:.2f} seconds")
    if report_path:
        logger.info(f"Results file: {report_path}")
    if report.kind == MigrationKind.FILES:
        logger.info("URL mapping saved in results file for database updates")

    for outcome in report.failed_outcomes:
        logger.warning(f"  Failed: {outcome.source_id}: {outcome.error}")

    if report.duplicate_ids:
        logger.warning(
            f"{len(report.duplicate_ids)} source(s) listed more than once, "
            f"mapping keeps the last result: {', '.join(report.duplicate_ids)}"
        )

    if report.mismatched_tables:
        names = ", ".join(t.table for t in report.mismatched_tables)
        logger.warning(f"Row counts differ for: {names}")

    if report.failure_count:
        logger.warning(f"Some {noun} failed to migrate. Check the results file for details.")
    else:
        logger.info(f"All {noun} migrated successfully!")
