"""
tests/test_row_migration.py

End-to-end row migration between two SQLite databases.
"""

from __future__ import annotations

import json

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import OperationalError

from conftest import seed_source
from lms_migrate.db import schema
from lms_migrate.db import session as db_session
from lms_migrate.db.schema import get_table_spec
from lms_migrate.db.upsert import count_rows, fetch_row
from lms_migrate.errors import MigrationError, SchemaMissing, SourceUnavailable
from lms_migrate.extractors.table_extractor import TableExtractor
from lms_migrate.orchestrator import RowMigrationOrchestrator
from lms_migrate.services.aggregator import ResultAggregator


EXPECTED_COUNTS = {
    "User": 2,
    "Course": 1,
    "Chapter": 7,
    "UserProgress": 1,
    "Purchase": 1,
    "Quiz": 1,
    "Question": 1,
}


@pytest.fixture()
def create_all_calls(monkeypatch):
    calls = []
    original = db_session.metadata.create_all

    def spy(*args, **kwargs):
        calls.append(kwargs.get("tables"))
        return original(*args, **kwargs)

    monkeypatch.setattr(db_session.metadata, "create_all", spy)
    return calls


class TestRowMigration:
    def test_missing_schema_is_created_once_and_counts_match(
        self, settings, source_engine, destination_engine, fake_sleep, create_all_calls
    ) -> None:
        seed_source(source_engine)

        report = RowMigrationOrchestrator(
            settings, source=source_engine, destination=destination_engine, sleep=fake_sleep
        ).run_migration()

        assert len(create_all_calls) == 1
        assert report.exit_code == 0
        assert report.total == sum(EXPECTED_COUNTS.values())
        assert report.mismatched_tables == []
        # Eight batches across seven non-empty tables, one pause between each.
        assert fake_sleep.calls == [2.0] * 7

        for name, expected in EXPECTED_COUNTS.items():
            assert count_rows(destination_engine, get_table_spec(name)) == expected

        with destination_engine.connect() as conn:
            question = fetch_row(conn, get_table_spec("Question"), "qq1")
        assert question["options"] == ["3", "4"]

        with open(settings.row_report_path, encoding="utf-8") as f:
            written = json.load(f)
        assert written["successful"] == report.total
        assert written["keyMapping"]["Chapter:ch3"] == "Chapter:ch3"
        assert {t["table"]: t["match"] for t in written["tables"]}["Chapter"] is True

    def test_rerun_is_idempotent(self, settings, source_engine, destination_engine, fake_sleep) -> None:
        seed_source(source_engine)
        orchestrator_args = dict(source=source_engine, destination=destination_engine, sleep=fake_sleep)

        RowMigrationOrchestrator(settings, **orchestrator_args).run_migration()
        report = RowMigrationOrchestrator(settings, **orchestrator_args).run_migration()

        assert report.exit_code == 0
        assert all(t.match for t in report.tables)
        assert count_rows(destination_engine, get_table_spec("User")) == 2

    def test_table_subset_keeps_dependency_order(self, settings, source_engine, destination_engine) -> None:
        orchestrator = RowMigrationOrchestrator(
            settings, source=source_engine, destination=destination_engine, tables=["Chapter", "User"]
        )
        assert [spec.name for spec in orchestrator.specs] == ["User", "Chapter"]

    def test_unknown_table_is_rejected(self, settings, source_engine, destination_engine) -> None:
        with pytest.raises(MigrationError, match="Unknown tables: Lesson"):
            RowMigrationOrchestrator(
                settings, source=source_engine, destination=destination_engine, tables=["Lesson"]
            )

    def test_schema_creation_can_be_disabled(self, settings, source_engine, destination_engine) -> None:
        settings.create_missing_schema = False

        with pytest.raises(SchemaMissing) as exc_info:
            RowMigrationOrchestrator(
                settings, source=source_engine, destination=destination_engine
            ).run_migration()

        assert "User" in exc_info.value.tables

    def test_source_without_tables_is_unavailable(self, settings, tmp_path, destination_engine) -> None:
        empty_source = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        try:
            with pytest.raises(SourceUnavailable):
                RowMigrationOrchestrator(
                    settings, source=empty_source, destination=destination_engine
                ).run_migration()
        finally:
            empty_source.dispose()

    def test_missing_database_urls(self, settings) -> None:
        with pytest.raises(MigrationError):
            RowMigrationOrchestrator(settings)


class TestVerifyOnly:
    def test_reports_mismatches_without_writing(self, settings, source_engine, destination_engine) -> None:
        seed_source(source_engine)
        schema.metadata.create_all(destination_engine)

        report = RowMigrationOrchestrator(
            settings, source=source_engine, destination=destination_engine
        ).verify_only()

        assert report.total == 0
        mismatched = {t.table for t in report.mismatched_tables}
        assert mismatched == set(EXPECTED_COUNTS)
        assert count_rows(destination_engine, get_table_spec("User")) == 0


class TestSchemaRemediationFailure:
    def test_create_error_is_fatal_after_one_attempt(
        self, settings, source_engine, destination_engine, monkeypatch
    ) -> None:
        attempts = []

        def failing_create_all(*args, **kwargs):
            attempts.append(kwargs.get("tables"))
            raise OperationalError("CREATE TABLE", {}, Exception("permission denied"))

        monkeypatch.setattr(db_session.metadata, "create_all", failing_create_all)

        with pytest.raises(SchemaMissing) as exc_info:
            RowMigrationOrchestrator(
                settings, source=source_engine, destination=destination_engine
            ).run_migration()

        assert len(attempts) == 1
        assert exc_info.value.tables[0] == "User"

    def test_tables_still_missing_after_create_is_fatal(
        self, settings, source_engine, destination_engine, monkeypatch
    ) -> None:
        attempts = []
        monkeypatch.setattr(
            db_session.metadata, "create_all", lambda *args, **kwargs: attempts.append(1)
        )

        with pytest.raises(SchemaMissing):
            RowMigrationOrchestrator(
                settings, source=source_engine, destination=destination_engine
            ).run_migration()

        assert len(attempts) == 1


class TestSourceFailures:
    def test_unreadable_table_aborts_before_any_write(
        self, settings, source_engine, destination_engine, fake_sleep, monkeypatch
    ) -> None:
        seed_source(source_engine)
        original = TableExtractor.read_records

        def read_records(self):
            if self.spec.name == "Quiz":
                raise SourceUnavailable("Cannot query table Quiz: connection lost")
            return original(self)

        monkeypatch.setattr(TableExtractor, "read_records", read_records)

        with pytest.raises(SourceUnavailable):
            RowMigrationOrchestrator(
                settings, source=source_engine, destination=destination_engine, sleep=fake_sleep
            ).run_migration()

        assert inspect(destination_engine).get_table_names() == []

    def test_interrupted_transfer_still_writes_partial_report(
        self, settings, source_engine, destination_engine, fake_sleep, monkeypatch
    ) -> None:
        seed_source(source_engine)
        original = ResultAggregator.add_batch
        completed = []

        def add_batch(self, number, outcomes):
            if len(completed) == 2:
                raise RuntimeError("disk full")
            original(self, number, outcomes)
            completed.append(number)

        monkeypatch.setattr(ResultAggregator, "add_batch", add_batch)

        with pytest.raises(RuntimeError, match="disk full"):
            RowMigrationOrchestrator(
                settings, source=source_engine, destination=destination_engine, sleep=fake_sleep
            ).run_migration()

        with open(settings.row_report_path, encoding="utf-8") as f:
            written = json.load(f)
        # User (2 rows) and Course (1 row) batches completed.
        assert written["totalRows"] == 3
        assert written["successful"] == 3
