"""
Data models for buckets listing records.

These Pydantic models validate each decoded line of a listing stream. Wire
field names (``contentType``, ``contentMD5``) are kept as aliases while the
Python attributes are snake_case.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["BucketEntry", "BucketObjectEntry", "MTIME_PATTERN"]

# Service timestamps are Date#toISOString output: millisecond precision, UTC.
MTIME_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"


def _parse_mtime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class BucketEntry(BaseModel):
    """One record of a bucket listing."""
    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(..., description="Bucket name")
    type: Literal["bucket"] = Field(default="bucket", description="Record kind")
    mtime: Optional[str] = Field(default=None, pattern=MTIME_PATTERN, description="Creation time")

    @property
    def modified(self) -> Optional[datetime]:
        return _parse_mtime(self.mtime) if self.mtime else None


class BucketObjectEntry(BaseModel):
    """
    One record of an object listing.

    All seven fields are required; ``type`` is always ``"bucketobject"``.
    """
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    name: str = Field(..., description="Object name")
    type: Literal["bucketobject"] = Field(..., description="Record kind")
    mtime: str = Field(..., pattern=MTIME_PATTERN, description="Last modification time")
    etag: str = Field(..., description="Entity tag")
    size: int = Field(..., ge=0, strict=True, description="Payload size in bytes")
    content_type: str = Field(..., alias="contentType", description="Stored content type")
    content_md5: str = Field(..., alias="contentMD5", description="Base64 MD5 of the payload")

    @property
    def modified(self) -> datetime:
        return _parse_mtime(self.mtime)
