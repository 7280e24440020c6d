"""
tests/test_storage_client.py

Prepare-response parsing and the two-step UploadThing upload, with a fake
HTTP session.
"""

from __future__ import annotations

import json

import pytest
import requests

from conftest import FakeResponse
from lms_migrate.config import derive_token
from lms_migrate.errors import UploadError
from lms_migrate.storage.client import UploadThingClient, parse_prepare_response


class FakeApiSession:
    """Returns queued responses in order and records every call."""

    def __init__(self, *responses, error: Exception = None):
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def _respond(self, method, url, **kwargs):
        self.calls.append(dict(kwargs, method=method, url=url))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def post(self, url, **kwargs):
        return self._respond("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self._respond("PUT", url, **kwargs)


def _json_response(status_code: int, payload) -> FakeResponse:
    return FakeResponse(
        status_code,
        content=json.dumps(payload).encode("utf-8"),
        reason="OK" if status_code < 400 else "Error",
        payload=payload,
    )


PRESIGNED = {
    "key": "k1",
    "fileName": "lecture.mp4",
    "url": "https://bucket.example/upload",
    "fields": {"policy": "p", "x-amz-signature": "s"},
    "fileUrl": "https://utfs.io/f/k1",
}


# ---------------------------------------------------------------------------
# parse_prepare_response
# ---------------------------------------------------------------------------


class TestParsePrepareResponse:
    def test_presigned_url_is_not_the_file_url(self) -> None:
        target = parse_prepare_response({"data": [PRESIGNED]})
        assert target.upload_url == "https://bucket.example/upload"
        assert target.file_url == "https://utfs.io/f/k1"
        assert target.fields == {"policy": "p", "x-amz-signature": "s"}
        assert target.name == "lecture.mp4"

    def test_ufs_url_preferred(self) -> None:
        target = parse_prepare_response([dict(PRESIGNED, ufsUrl="https://app.ufs.sh/f/k1")])
        assert target.file_url == "https://app.ufs.sh/f/k1"

    def test_file_url_falls_back_to_key(self) -> None:
        target = parse_prepare_response({"data": {"key": "k2", "url": "https://bucket.example/put"}})
        assert target.file_url == "https://utfs.io/f/k2"
        assert target.fields == {}

    def test_error_payload(self) -> None:
        with pytest.raises(UploadError, match="Upload failed: quota exceeded"):
            parse_prepare_response([{"data": None, "error": "quota exceeded"}])

    def test_structured_error_is_serialized(self) -> None:
        with pytest.raises(UploadError, match='"code": "TOO_LARGE"'):
            parse_prepare_response({"error": {"code": "TOO_LARGE"}})

    @pytest.mark.parametrize("payload", [
        [],
        {"data": []},
        {"data": {"key": "k3"}},
        {"data": {"url": "https://bucket.example/put"}},
        "text",
    ])
    def test_incomplete_response_is_an_error(self, payload) -> None:
        with pytest.raises(UploadError):
            parse_prepare_response(payload)


# ---------------------------------------------------------------------------
# UploadThingClient
# ---------------------------------------------------------------------------


TOKEN = derive_token("sk_test_123", "app42")
API_URL = "https://api.example/v6/uploadFiles"


class TestUploadThingClient:
    def test_upload_prepares_then_sends_bytes(self) -> None:
        session = FakeApiSession(_json_response(200, {"data": [PRESIGNED]}), FakeResponse(204))
        client = UploadThingClient(TOKEN, API_URL, timeout=30, session=session)

        remote = client.upload(b"bytes", "lecture.mp4", "video/mp4")

        assert remote.url == "https://utfs.io/f/k1"
        assert remote.key == "k1"
        assert len(session.calls) == 2

        prepare, send = session.calls
        assert prepare["method"] == "POST"
        assert prepare["url"] == API_URL
        assert prepare["json"]["files"] == [{"name": "lecture.mp4", "size": 5, "type": "video/mp4"}]
        assert prepare["headers"]["x-uploadthing-api-key"] == "sk_test_123"
        assert prepare["timeout"] == 30

        assert send["method"] == "POST"
        assert send["url"] == "https://bucket.example/upload"
        assert send["data"] == {"policy": "p", "x-amz-signature": "s"}
        assert send["files"] == {"file": ("lecture.mp4", b"bytes", "video/mp4")}
        assert "headers" not in send

    def test_target_without_fields_gets_a_put(self) -> None:
        target = {"key": "k2", "url": "https://bucket.example/put", "ufsUrl": "https://app.ufs.sh/f/k2"}
        session = FakeApiSession(_json_response(200, {"data": [target]}), FakeResponse(200))
        client = UploadThingClient(TOKEN, API_URL, session=session)

        remote = client.upload(b"png", "a.png", "image/png")

        assert remote.url == "https://app.ufs.sh/f/k2"
        send = session.calls[1]
        assert send["method"] == "PUT"
        assert send["data"] == b"png"
        assert send["headers"] == {"Content-Type": "image/png"}

    def test_rejected_bytes_fail_the_upload(self) -> None:
        session = FakeApiSession(
            _json_response(200, {"data": [PRESIGNED]}),
            FakeResponse(403, reason="Forbidden"),
        )
        client = UploadThingClient(TOKEN, API_URL, session=session)

        with pytest.raises(UploadError) as exc_info:
            client.upload(b"bytes", "lecture.mp4", "video/mp4")

        assert exc_info.value.status_code == 403
        assert len(session.calls) == 2

    def test_prepare_error_status_skips_sending(self) -> None:
        session = FakeApiSession(_json_response(401, {"error": "Invalid API key"}))
        client = UploadThingClient(TOKEN, API_URL, session=session)

        with pytest.raises(UploadError) as exc_info:
            client.upload(b"bytes", "a.png", "image/png")

        assert exc_info.value.status_code == 401
        assert "Invalid API key" in str(exc_info.value)
        assert len(session.calls) == 1

    def test_transport_error_is_not_retried(self) -> None:
        session = FakeApiSession(error=requests.exceptions.ConnectionError("connection reset"))
        client = UploadThingClient(TOKEN, API_URL, session=session)

        with pytest.raises(UploadError, match="connection reset"):
            client.upload(b"bytes", "a.png", "image/png")
        assert len(session.calls) == 1
