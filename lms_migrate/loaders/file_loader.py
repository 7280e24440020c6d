"""Loader that copies files between storage accounts."""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import BaseLoader
from ..errors import TransferFailed
from ..models.record import FileRecord
from ..services.mime import infer_mime_type
from ..storage.client import StorageClient

logger = logging.getLogger(__name__)


class FileLoader(BaseLoader):
    """
    Downloads a file from its old URL and uploads it to the new account.

    Downloads may be retried at the transport level for 429/5xx responses.
    The upload is attempted exactly once.
    """

    def __init__(
        self,
        storage: StorageClient,
        session: Optional[requests.Session] = None,
        timeout: float = 120.0,
        download_retries: int = 3
    ):
        """
        Initialize the file loader.

        Args:
            storage: Destination storage client
            session: Custom requests session for downloads
            timeout: Download timeout in seconds
            download_retries: Transport-level retries for downloads
        """
        self.storage = storage
        self.timeout = timeout
        self._session = session or self._create_session(download_retries)

    def _create_session(self, download_retries: int) -> requests.Session:
        """Create a requests session with retry logic for GET requests."""
        session = requests.Session()

        retries = Retry(
            total=download_retries,
            backoff_factor=2.0,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    def download(self, record: FileRecord) -> bytes:
        """Fetch the file bytes from the old URL."""
        logger.info(f"Downloading: {record.name} ({record.size_kb:.2f} KB)")
        response = self._session.get(record.source_url, timeout=self.timeout)
        if not response.ok:
            raise TransferFailed(f"Failed to download: {response.status_code} {response.reason}")
        return response.content

    def load_record(self, record: FileRecord) -> str:
        data = self.download(record)
        mime_type = infer_mime_type(record.name)

        logger.info(f"Uploading to new account: {record.name} ({mime_type})")
        remote = self.storage.upload(data, record.name, mime_type)

        logger.debug(f"Old: {record.source_url}")
        logger.debug(f"New: {remote.url}")
        return remote.url

    def close(self) -> None:
        self._session.close()
