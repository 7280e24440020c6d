"""Migration orchestrators - wire readers, workers and the aggregator together."""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import requests
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import MigrationSettings
from .db.schema import MIGRATION_ORDER, TableSpec, get_table_spec
from .db.session import check_connection, create_db_engine, ensure_schema
from .errors import MigrationError, SourceUnavailable
from .extractors.manifest_extractor import ManifestExtractor
from .extractors.table_extractor import TableExtractor
from .loaders.base import BaseLoader
from .loaders.file_loader import FileLoader
from .loaders.row_loader import RowLoader
from .models.record import MigrationRecord, RowRecord
from .models.report import MigrationKind, MigrationReport
from .services.aggregator import ResultAggregator, log_summary, write_report
from .services.batching import BatchCoordinator
from .storage.client import StorageClient, UploadThingClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class MigrationOrchestrator:
    """
    Shared plumbing for a single-pass batch migration.

    Handles:
    - Batch coordination with the configured size and delay
    - Outcome aggregation and progress logging
    - Writing the JSON report and the summary
    """

    kind: MigrationKind

    def __init__(self, settings: MigrationSettings, sleep: Optional[Sleep] = None):
        """
        Initialize the orchestrator.

        Args:
            settings: Run configuration
            sleep: Awaitable sleep used between batches (tests pass a fake)
        """
        self.settings = settings
        self.coordinator = BatchCoordinator(
            batch_size=settings.batch_size,
            delay_seconds=settings.batch_delay,
            sleep=sleep,
        )
        self.aggregator: Optional[ResultAggregator] = None

    async def _process(self, records: Sequence[MigrationRecord], loader: BaseLoader) -> None:
        await self.coordinator.run(records, loader.transfer, self.aggregator.add_batch)

    def _run_batches(self, coroutine: Awaitable[None], report_path: str) -> None:
        """Run the transfer phase, saving partial results if it is interrupted."""
        try:
            asyncio.run(coroutine)
        except Exception:
            logger.error("Migration interrupted, saving partial results")
            self._finish(report_path)
            raise

    def _finish(self, report_path: str) -> MigrationReport:
        report = self.aggregator.build_report()
        path = write_report(report, report_path)
        log_summary(report, path)
        return report


class FileMigrationOrchestrator(MigrationOrchestrator):
    """Re-uploads every file of a manifest to the destination storage account."""

    kind = MigrationKind.FILES

    def __init__(
        self,
        settings: MigrationSettings,
        storage: Optional[StorageClient] = None,
        session: Optional[requests.Session] = None,
        sleep: Optional[Sleep] = None
    ):
        """
        Initialize the file migration.

        Args:
            settings: Run configuration
            storage: Destination storage client; built from settings when omitted
            session: requests session used for downloads
            sleep: Awaitable sleep used between batches
        """
        super().__init__(settings, sleep)
        self.storage = storage
        self.session = session

    def _create_storage(self) -> StorageClient:
        token = self.settings.require_storage()
        if self.settings.storage_app_id:
            logger.info(f"App ID: {self.settings.storage_app_id}")
        logger.info(f"Token: {token[:30]}...")
        return UploadThingClient(
            token=token,
            upload_url=self.settings.storage_upload_url,
            timeout=self.settings.request_timeout,
        )

    def run_migration(self) -> MigrationReport:
        """
        Run the file migration.

        Returns:
            The written report

        Raises:
            ConfigurationMissing: storage credentials are not configured
            SourceUnavailable: the manifest cannot be read
        """
        logger.info("Starting file migration...")

        storage = self.storage or self._create_storage()
        records = ManifestExtractor(self.settings.manifest_path).extract().records

        self.aggregator = ResultAggregator(self.kind, expected_total=len(records))
        loader = FileLoader(storage, session=self.session, timeout=self.settings.request_timeout)
        try:
            self._run_batches(self._process(records, loader), self.settings.file_report_path)
        finally:
            loader.close()

        return self._finish(self.settings.file_report_path)


class RowMigrationOrchestrator(MigrationOrchestrator):
    """Copies the application tables from the source to the destination database."""

    kind = MigrationKind.ROWS

    def __init__(
        self,
        settings: MigrationSettings,
        source: Optional[Engine] = None,
        destination: Optional[Engine] = None,
        tables: Optional[List[str]] = None,
        sleep: Optional[Sleep] = None
    ):
        """
        Initialize the row migration.

        Args:
            settings: Run configuration
            source: Source engine; built from settings when omitted
            destination: Destination engine; built from settings when omitted
            tables: Subset of tables to migrate (always run in dependency order)
            sleep: Awaitable sleep used between batches
        """
        super().__init__(settings, sleep)
        if source is None or destination is None:
            settings.require_databases()
        self.source = source or create_db_engine(settings.source_database_url, settings.batch_size)
        self.destination = destination or create_db_engine(
            settings.destination_database_url, settings.batch_size
        )
        self.specs = self._select_tables(tables)

    @staticmethod
    def _select_tables(tables: Optional[List[str]]) -> List[TableSpec]:
        if not tables:
            return [get_table_spec(name) for name in MIGRATION_ORDER]
        unknown = [name for name in tables if name not in MIGRATION_ORDER]
        if unknown:
            raise MigrationError(f"Unknown tables: {', '.join(unknown)}")
        return [get_table_spec(name) for name in MIGRATION_ORDER if name in tables]

    def check_connections(self) -> None:
        """Open one connection on each side."""
        logger.info(f"Source DB: {self.source.url.render_as_string(hide_password=True)}")
        logger.info(f"Destination DB: {self.destination.url.render_as_string(hide_password=True)}")

        try:
            check_connection(self.source)
        except SQLAlchemyError as e:
            raise SourceUnavailable(f"Cannot connect to source database: {e}") from e
        check_connection(self.destination)
        logger.info("Both connections successful")

    def count_source_rows(self) -> Dict[str, int]:
        """Count source rows per table and log them."""
        logger.info("Counting rows in source database...")
        counts = {}
        for spec in self.specs:
            counts[spec.name] = TableExtractor(self.source, spec).count()
            logger.info(f"  {spec.name:<25} {counts[spec.name]:>10} rows")
        logger.info(f"  {'TOTAL':<25} {sum(counts.values()):>10} rows")
        return counts

    def read_source_rows(self) -> List[Tuple[TableSpec, List[RowRecord]]]:
        """List the rows of every selected table, in migration order."""
        return [(spec, TableExtractor(self.source, spec).extract().records) for spec in self.specs]

    async def _migrate_tables(
        self,
        loader: RowLoader,
        tables: List[Tuple[TableSpec, List[RowRecord]]]
    ) -> None:
        for spec, records in tables:
            if not records:
                logger.info(f"Skipping {spec.name}: no rows")
                continue
            logger.info(f"Migrating {spec.name} ({len(records)} rows)...")
            await self._process(records, loader)

    def run_migration(self) -> MigrationReport:
        """
        Run the row migration.

        Returns:
            The written report, including per-table count verification

        Raises:
            SourceUnavailable: the source database or a table cannot be read
            SchemaMissing: destination tables are missing and cannot be created
        """
        logger.info("Starting database migration...")
        self.check_connections()

        # Every source read happens before the first destination write
        source_counts = self.count_source_rows()
        tables = self.read_source_rows()

        logger.info("Checking destination database schema...")
        ensure_schema(self.destination, create_missing=self.settings.create_missing_schema)
        logger.info("Schema ready")

        self.aggregator = ResultAggregator(
            self.kind, expected_total=sum(len(records) for _, records in tables)
        )

        logger.info("Migrating data with upserts. Existing records will be updated.")
        self._run_batches(
            self._migrate_tables(RowLoader(self.source, self.destination), tables),
            self.settings.row_report_path,
        )

        self.aggregator.verify_counts(source_counts, self.destination)
        return self._finish(self.settings.row_report_path)

    def verify_only(self) -> MigrationReport:
        """Compare row counts without migrating anything."""
        self.check_connections()
        source_counts = self.count_source_rows()
        self.aggregator = ResultAggregator(self.kind, expected_total=0)
        self.aggregator.verify_counts(source_counts, self.destination)
        return self.aggregator.build_report()

    def dispose(self) -> None:
        """Close pooled connections on both engines."""
        self.source.dispose()
        self.destination.dispose()
