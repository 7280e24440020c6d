"""Destination file-storage clients."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import requests

from ..config import decode_token
from ..errors import UploadError

logger = logging.getLogger(__name__)

API_VERSION = "6.4.0"
FILE_URL_FIELDS = ("ufsUrl", "fileUrl", "appUrl")
DEFAULT_FILE_HOST = "https://utfs.io/f/"


@dataclass(frozen=True)
class RemoteFile:
    """A file stored in the destination account."""
    url: str
    key: Optional[str] = None
    name: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class PresignedUpload:
    """Where to send the bytes of one file, and where it will be served from."""
    key: Optional[str]
    upload_url: str
    file_url: str
    fields: Dict[str, str] = field(default_factory=dict, hash=False)
    name: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


class StorageClient(Protocol):
    """Anything that can store bytes under a file name."""

    def upload(self, data: bytes, filename: str, mime_type: str) -> RemoteFile:
        ...


def _error_message(error: Any) -> str:
    return error if isinstance(error, str) else json.dumps(error)


def parse_prepare_response(payload: Any) -> PresignedUpload:
    """
    Extract the upload target from a prepare-upload API response.

    Accepts ``{"data": [...]}``, ``{"data": {...}}``, a list of entries (the
    first is used), or a bare entry. The entry's ``url`` is the presigned
    target for the bytes; the served location comes from ``ufsUrl``,
    ``fileUrl`` or ``appUrl``, falling back to the file key.

    Raises:
        UploadError: on an error payload or when no upload target is present
    """
    if isinstance(payload, list):
        if not payload:
            raise UploadError("Upload failed: No result returned")
        payload = payload[0]

    if not isinstance(payload, dict):
        raise UploadError(f"Upload failed: Unexpected response {payload!r}")

    error = payload.get("error")
    if error:
        raise UploadError(f"Upload failed: {_error_message(error)}")

    entry = payload.get("data") or payload
    if isinstance(entry, list):
        if not entry:
            raise UploadError("Upload failed: No result returned")
        entry = entry[0]

    upload_url = entry.get("url")
    if not upload_url:
        raise UploadError("Upload failed: No upload URL in response")

    key = entry.get("key")
    file_url = next((entry.get(name) for name in FILE_URL_FIELDS if entry.get(name)), None)
    if not file_url:
        if not key:
            raise UploadError("Upload failed: No file URL in response")
        file_url = f"{DEFAULT_FILE_HOST}{key}"

    return PresignedUpload(
        key=key,
        upload_url=upload_url,
        file_url=file_url,
        fields=dict(entry.get("fields") or {}),
        name=entry.get("fileName") or entry.get("name"),
        raw=entry,
    )


class UploadThingClient:
    """
    Client for the UploadThing file storage API.

    An upload is two requests: a JSON prepare call to the API, which returns a
    presigned target, then the file bytes sent to that target. No retries are
    made, so a call performs exactly one upload attempt.
    """

    def __init__(
        self,
        token: str,
        upload_url: str,
        timeout: float = 120.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            token: Base64 token carrying the API key and app id
            upload_url: Prepare-upload endpoint of the API
            timeout: Per-request timeout in seconds
            session: Custom requests session
        """
        credentials = decode_token(token)
        self.api_key = credentials.get("apiKey")
        self.app_id = credentials.get("appId")
        self.upload_url = upload_url
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def api_headers(self) -> Dict[str, str]:
        """Headers for API calls. Not sent to the presigned target."""
        headers = {"x-uploadthing-version": API_VERSION}
        if self.api_key:
            headers["x-uploadthing-api-key"] = self.api_key
        return headers

    def prepare(self, filename: str, size: int, mime_type: str) -> PresignedUpload:
        """Request an upload target for one file."""
        body = {
            "files": [{"name": filename, "size": size, "type": mime_type}],
            "contentDisposition": "inline",
        }
        try:
            response = self._session.post(
                self.upload_url,
                json=body,
                headers=self.api_headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise UploadError(f"Upload failed: {e}")

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {"error": response.text or response.reason}

        if not response.ok:
            message = payload.get("error") if isinstance(payload, dict) else None
            message = _error_message(message) if message else response.reason
            raise UploadError(
                f"Upload failed: {response.status_code} {message}",
                status_code=response.status_code,
            )

        return parse_prepare_response(payload)

    def send(self, target: PresignedUpload, data: bytes, filename: str, mime_type: str) -> None:
        """Send the file bytes to a presigned target."""
        try:
            if target.fields:
                # Presigned POST: policy fields first, file last
                response = self._session.post(
                    target.upload_url,
                    data=target.fields,
                    files={"file": (filename, data, mime_type)},
                    timeout=self.timeout,
                )
            else:
                response = self._session.put(
                    target.upload_url,
                    data=data,
                    headers={"Content-Type": mime_type},
                    timeout=self.timeout,
                )
        except requests.exceptions.RequestException as e:
            raise UploadError(f"Upload failed: {e}")

        if not response.ok:
            raise UploadError(
                f"Upload failed: storage rejected {filename}: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

    def upload(self, data: bytes, filename: str, mime_type: str) -> RemoteFile:
        """Upload one file and return where it is served from."""
        target = self.prepare(filename, len(data), mime_type)
        self.send(target, data, filename, mime_type)

        logger.debug(f"Stored {filename} at {target.file_url}")
        return RemoteFile(
            url=target.file_url,
            key=target.key,
            name=target.name or filename,
            raw=target.raw,
        )
