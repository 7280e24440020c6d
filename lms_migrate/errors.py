"""Exception hierarchy for migration runs."""

from typing import Dict, Optional


class MigrationError(Exception):
    """Base class for all migration errors."""


class ConfigurationMissing(MigrationError):
    """Required configuration is absent. Raised before any work starts."""

    def __init__(self, message: str, status: Optional[Dict[str, bool]] = None):
        self.status = status or {}
        if self.status:
            lines = [message, "Current values:"]
            for name, is_set in self.status.items():
                lines.append(f"  {name}: {'set' if is_set else 'missing'}")
            message = "\n".join(lines)
        super().__init__(message)

    @property
    def missing(self):
        """Names of the variables that are not set."""
        return [name for name, is_set in self.status.items() if not is_set]


class SourceUnavailable(MigrationError):
    """The manifest or source table cannot be read."""


class TransferFailed(MigrationError):
    """A single record could not be transferred."""


class UploadError(TransferFailed):
    """The destination storage API rejected an upload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SchemaMissing(MigrationError):
    """The destination database lacks expected tables."""

    def __init__(self, tables):
        self.tables = list(tables)
        super().__init__(
            "Destination database is missing tables: " + ", ".join(self.tables)
        )


def describe_error(error: BaseException) -> str:
    """Extract a human readable message from an exception."""
    message = str(error).strip()
    if not message and error.args:
        message = repr(error.args[0])
    if not message:
        message = error.__class__.__name__
    return message
