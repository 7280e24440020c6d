"""
tests/conftest.py

Shared fakes and fixtures.

No network access: downloads go through FakeSession and uploads through
FakeStorage. Databases are SQLite files under tmp_path standing in for the
source and destination Postgres instances.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from lms_migrate.config import MigrationSettings
from lms_migrate.db import schema
from lms_migrate.errors import UploadError
from lms_migrate.storage.client import RemoteFile


# ---------------------------------------------------------------------------
# HTTP / storage fakes
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", reason: str = "OK", payload=None):
        self.status_code = status_code
        self.content = content
        self.reason = reason
        self._payload = payload
        self.text = content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Serves canned responses by URL and records every GET."""

    def __init__(self, responses: Optional[Dict[str, FakeResponse]] = None):
        self.responses = responses or {}
        self.requested: List[str] = []
        self.closed = False

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.requested.append(url)
        return self.responses.get(url, FakeResponse(404, reason="Not Found"))

    def close(self) -> None:
        self.closed = True


class FakeStorage:
    """Stores uploads in memory; names listed in ``reject`` fail."""

    def __init__(self, base_url: str = "https://new.example/f", reject: Optional[Dict[str, str]] = None):
        self.base_url = base_url
        self.reject = reject or {}
        self.uploads: List[tuple] = []

    def upload(self, data: bytes, filename: str, mime_type: str) -> RemoteFile:
        self.uploads.append((data, filename, mime_type))
        if filename in self.reject:
            raise UploadError(f"Upload failed: {self.reject[filename]}")
        return RemoteFile(url=f"{self.base_url}/{filename}", key=filename, name=filename)


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def settings(tmp_path) -> MigrationSettings:
    return MigrationSettings(
        manifest_path=str(tmp_path / "selected-rows.json"),
        file_report_path=str(tmp_path / "file-results.json"),
        row_report_path=str(tmp_path / "row-results.json"),
    )


# ---------------------------------------------------------------------------
# Databases
# ---------------------------------------------------------------------------


CREATED = datetime(2024, 1, 15, 9, 30, 0)
UPDATED = datetime(2024, 2, 1, 18, 45, 12)


def _stamps() -> dict:
    return {"createdAt": CREATED, "updatedAt": UPDATED}


def seed_source(engine: Engine, chapters: int = 7) -> None:
    """Insert a small, consistent data set into every touched table."""
    with engine.begin() as conn:
        conn.execute(schema.user.insert(), [
            {"id": "u1", "fullName": "Teacher One", "phoneNumber": "0100", "hashedPassword": "x",
             "role": "TEACHER", "balance": 0.0, **_stamps()},
            {"id": "u2", "fullName": "Student Two", "phoneNumber": "0101", "parentPhoneNumber": "0102",
             "hashedPassword": "y", "role": "USER", "balance": 150.5, **_stamps()},
        ])
        conn.execute(schema.course.insert(), [
            {"id": "c1", "userId": "u1", "title": "Physics", "price": 200.0, "isPublished": True, **_stamps()},
        ])
        conn.execute(schema.chapter.insert(), [
            {"id": f"ch{i}", "title": f"Chapter {i}", "videoType": "YOUTUBE", "position": i,
             "isPublished": True, "isFree": i == 1, "courseId": "c1", **_stamps()}
            for i in range(1, chapters + 1)
        ])
        conn.execute(schema.user_progress.insert(), [
            {"id": "p1", "userId": "u2", "chapterId": "ch1", "isCompleted": True, **_stamps()},
        ])
        conn.execute(schema.purchase.insert(), [
            {"id": "pu1", "userId": "u2", "courseId": "c1", "status": "ACTIVE", **_stamps()},
        ])
        conn.execute(schema.quiz.insert(), [
            {"id": "q1", "title": "Quiz", "position": 1, "isPublished": True, "maxAttempts": 2,
             "courseId": "c1", **_stamps()},
        ])
        conn.execute(schema.question.insert(), [
            {"id": "qq1", "text": "2+2?", "type": "MULTIPLE_CHOICE", "options": ["3", "4"],
             "correctAnswer": "4", "points": 1, "position": 1, "quizId": "q1", **_stamps()},
        ])


@pytest.fixture()
def source_engine(tmp_path) -> Engine:
    engine = create_engine(f"sqlite:///{tmp_path / 'source.db'}")
    schema.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def destination_engine(tmp_path) -> Engine:
    """Empty destination database, no tables."""
    engine = create_engine(f"sqlite:///{tmp_path / 'destination.db'}")
    yield engine
    engine.dispose()
