"""Pydantic models for the storage manifest."""

from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .record import FileRecord


class ManifestEntry(BaseModel):
    """One file descriptor as exported from the old storage account."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1)
    key: str = ""
    custom_id: Optional[str] = Field(default=None, alias="customId")
    url: str = Field(min_length=1)
    size: int = Field(default=0, ge=0)
    uploaded_at: Optional[datetime] = Field(default=None, alias="uploadedAt")

    @field_validator("uploaded_at", mode="before")
    @classmethod
    def _parse_uploaded_at(cls, value: Any) -> Any:
        """Accept ISO strings, free-form dates and epoch milliseconds."""
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        if isinstance(value, str):
            if value.isdigit():
                return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
            return date_parser.parse(value)
        return value

    def to_record(self) -> FileRecord:
        return FileRecord(
            name=self.name,
            source_key=self.key,
            source_url=self.url,
            size_bytes=self.size,
            uploaded_at=self.uploaded_at,
            custom_id=self.custom_id,
        )
