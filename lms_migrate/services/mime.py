"""MIME type inference from file names."""

from pathlib import PurePosixPath

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".mp4": "video/mp4",
    ".mov": "video/mp4",
    ".mp3": "audio/mpeg",
}


def infer_mime_type(filename: str) -> str:
    """Resolve a MIME type from the file extension (case-insensitive)."""
    return MIME_TYPES.get(PurePosixPath(filename).suffix.lower(), DEFAULT_MIME_TYPE)
