"""Run configuration, built once from the environment and passed explicitly."""

import base64
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationMissing

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 2.0
DEFAULT_REGIONS = ["us-east-1"]
DEFAULT_UPLOAD_URL = "https://api.uploadthing.com/v6/uploadFiles"
DEFAULT_MANIFEST_PATH = "selected-rows.json"
DEFAULT_FILE_REPORT_PATH = "uploadthing-migration-results.json"
DEFAULT_ROW_REPORT_PATH = "database-migration-results.json"

# Primary name first, accepted aliases after it.
SOURCE_DATABASE_VARS = ("SOURCE_DATABASE_URL", "AIVEN_DATABASE_URL")
DESTINATION_DATABASE_VARS = ("DESTINATION_DATABASE_URL", "PRISMA_DATABASE_URL")


def load_env_files(directory: Optional[Path] = None) -> List[Path]:
    """
    Load KEY=VALUE pairs from `.env` and `.env.local` (if present).

    Existing process environment variables are not overwritten.

    Returns:
        Paths of the files that were read
    """
    directory = Path(directory or Path.cwd())
    loaded = []

    for filename in (".env", ".env.local"):
        env_path = directory / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value

        loaded.append(env_path)

    if not loaded:
        logger.debug("No .env files found, using process environment only")

    return loaded


def derive_token(secret: str, app_id: str, regions: Optional[List[str]] = None) -> str:
    """
    Build a storage API token from a secret key and an application id.

    The token is the base64 encoding of a compact JSON object
    ``{"apiKey": ..., "appId": ..., "regions": [...]}``.
    """
    payload = {
        "apiKey": secret,
        "appId": app_id,
        "regions": list(regions or DEFAULT_REGIONS),
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_token(token: str) -> Dict[str, Any]:
    """Decode a token produced by :func:`derive_token`."""
    try:
        return json.loads(base64.b64decode(token).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise ConfigurationMissing(f"UPLOADTHING_TOKEN is not a valid token: {e}")


def _first_set(environ: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default


def _get_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default


@dataclass
class MigrationSettings:
    """Configuration shared by every component of a run."""

    # Destination file storage
    storage_token: Optional[str] = None
    storage_secret: Optional[str] = None
    storage_app_id: Optional[str] = None
    storage_upload_url: str = DEFAULT_UPLOAD_URL

    # Databases
    source_database_url: Optional[str] = None
    destination_database_url: Optional[str] = None

    # Execution
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay: float = DEFAULT_BATCH_DELAY
    request_timeout: float = 120.0
    create_missing_schema: bool = True

    # Input / output
    manifest_path: str = DEFAULT_MANIFEST_PATH
    file_report_path: str = DEFAULT_FILE_REPORT_PATH
    row_report_path: str = DEFAULT_ROW_REPORT_PATH

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MigrationSettings":
        """
        Create settings from environment variables.

        Nothing is validated here; each pipeline calls the ``require_*``
        method for the values it needs.
        """
        env = os.environ if environ is None else environ

        return cls(
            storage_token=env.get("UPLOADTHING_TOKEN") or None,
            storage_secret=env.get("UPLOADTHING_SECRET") or None,
            storage_app_id=env.get("UPLOADTHING_APP_ID") or None,
            storage_upload_url=env.get("UPLOADTHING_UPLOAD_URL") or DEFAULT_UPLOAD_URL,
            source_database_url=_first_set(env, SOURCE_DATABASE_VARS),
            destination_database_url=_first_set(env, DESTINATION_DATABASE_VARS),
            batch_size=max(1, _get_int(env, "MIGRATION_BATCH_SIZE", DEFAULT_BATCH_SIZE)),
            batch_delay=max(0.0, _get_float(env, "MIGRATION_BATCH_DELAY", DEFAULT_BATCH_DELAY)),
        )

    def storage_status(self) -> Dict[str, bool]:
        """Which storage variables are set."""
        return {
            "UPLOADTHING_TOKEN": bool(self.storage_token),
            "UPLOADTHING_SECRET": bool(self.storage_secret),
            "UPLOADTHING_APP_ID": bool(self.storage_app_id),
        }

    def database_status(self) -> Dict[str, bool]:
        """Which database variables are set, each key naming the accepted aliases."""
        return {
            " or ".join(SOURCE_DATABASE_VARS): bool(self.source_database_url),
            " or ".join(DESTINATION_DATABASE_VARS): bool(self.destination_database_url),
        }

    def require_storage(self) -> str:
        """
        Resolve the storage token.

        Returns:
            The configured token, or one derived from the secret and app id

        Raises:
            ConfigurationMissing: if neither a token nor both halves are set
        """
        if self.storage_token:
            logger.info("Using existing UPLOADTHING_TOKEN")
            return self.storage_token

        if not self.storage_secret or not self.storage_app_id:
            raise ConfigurationMissing(
                "Either UPLOADTHING_TOKEN or both UPLOADTHING_SECRET and "
                "UPLOADTHING_APP_ID must be set",
                status=self.storage_status(),
            )

        self.storage_token = derive_token(self.storage_secret, self.storage_app_id)
        logger.info("Created token from UPLOADTHING_SECRET and UPLOADTHING_APP_ID")
        return self.storage_token

    def require_databases(self) -> None:
        """Raise ConfigurationMissing unless both database URLs are set."""
        status = self.database_status()
        if not all(status.values()):
            raise ConfigurationMissing(
                f"{SOURCE_DATABASE_VARS[0]} (or {SOURCE_DATABASE_VARS[1]}) and "
                f"{DESTINATION_DATABASE_VARS[0]} (or {DESTINATION_DATABASE_VARS[1]}) "
                "must both be set",
                status=status,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation, without secrets."""
        return {
            "storage_upload_url": self.storage_upload_url,
            "storage_configured": bool(self.storage_token or (self.storage_secret and self.storage_app_id)),
            "source_database_configured": bool(self.source_database_url),
            "destination_database_configured": bool(self.destination_database_url),
            "batch_size": self.batch_size,
            "batch_delay": self.batch_delay,
            "request_timeout": self.request_timeout,
            "create_missing_schema": self.create_missing_schema,
            "manifest_path": self.manifest_path,
            "file_report_path": self.file_report_path,
            "row_report_path": self.row_report_path,
        }
