"""Destination file-storage clients."""

from .client import (
    RemoteFile,
    StorageClient,
    UploadThingClient,
    PresignedUpload,
    parse_prepare_response,
)

__all__ = [
    "RemoteFile",
    "StorageClient",
    "UploadThingClient",
    "PresignedUpload",
    "parse_prepare_response",
]
