"""Shared types for pending uploads, gallery assets and batch results."""

import mimetypes
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import aiofiles
from pydantic import BaseModel, ConfigDict, Field, field_validator

PENDING_ID_PREFIX = "pending-"
NEW_ASSET_ID_PREFIX = "new-"

PENDING_ID_PATTERN = re.compile(r"^pending-[0-9a-f]{32}$")
NEW_ASSET_ID_PATTERN = re.compile(r"^new-[0-9a-f]{32}$")


def new_pending_id() -> str:
    """Generate a local id for a pending upload."""
    return f"{PENDING_ID_PREFIX}{uuid.uuid4().hex}"


def is_pending_id(value: str) -> bool:
    """Check whether an id belongs to a pending upload rather than a stored asset."""
    return bool(PENDING_ID_PATTERN.match(value))


def new_asset_id() -> str:
    """Placeholder id for an uploaded asset the server has not assigned an id to yet."""
    return f"{NEW_ASSET_ID_PREFIX}{uuid.uuid4().hex}"


def is_new_asset_id(value: str) -> bool:
    return bool(NEW_ASSET_ID_PATTERN.match(value))


class UploadStatus(str, Enum):
    QUEUED = "queued"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SourceFile:
    """A file chosen by the user: raw bytes plus name and MIME type."""

    data: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    async def from_path(cls, path: str | Path, content_type: str | None = None) -> "SourceFile":
        """Read a file from disk without blocking the event loop."""
        path = Path(path)
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(data=data, filename=path.name, content_type=content_type)


@dataclass
class PendingUpload:
    """A selected file that has not been persisted yet.

    Status, progress and error are mutated in place while the upload runs.
    Once disposed, the preview handle is gone and the upload must not be touched.
    """

    id: str
    source: SourceFile
    preview_handle: str | None
    target_container: str
    status: UploadStatus = UploadStatus.QUEUED
    progress: int = 0
    error: str | None = None
    url: str | None = None
    disposed: bool = False

    @property
    def filename(self) -> str:
        return self.source.filename


class PendingMetadata(BaseModel):
    """Metadata the user attached to a pending upload before it was uploaded."""

    alt_text: str = ""
    is_primary: bool = False
    display_order: int | None = None
    # Tick of the set_primary call that flagged this upload
    primary_marked_at: int | None = None


class MediaAsset(BaseModel):
    """A persisted gallery item."""

    model_config = ConfigDict(frozen=True)

    id: str
    url: str
    alt_text: str = ""
    is_primary: bool = False
    display_order: int = Field(default=0, ge=0)

    @field_validator("id")
    @classmethod
    def _reject_pending_ids(cls, value: str) -> str:
        if is_pending_id(value):
            raise ValueError("a pending upload id cannot identify a media asset")
        return value


class GalleryMetadataItem(BaseModel):
    """One entry of the gallery-metadata upsert payload."""

    url: str
    alt_text: str = ""
    is_primary: bool = False
    display_order: int = Field(ge=0)


class OrderAssignment(BaseModel):
    """One entry of the reorder payload."""

    item_id: str
    new_order: int


@dataclass
class UploadResult:
    """Outcome of one upload round trip. Failures are values, not exceptions."""

    success: bool
    url: str | None = None
    error: str | None = None
    error_kind: str | None = None  # validation, transport or remote
    filename: str | None = None
    size_bytes: int | None = None
    asset_id: str | None = None
    duration_ms: float = 0.0

    @classmethod
    def failure(cls, error: Exception | str, kind: str, filename: str | None = None) -> "UploadResult":
        message = str(error) or "Upload failed"
        return cls(success=False, error=message, error_kind=kind, filename=filename)


@dataclass
class UploadedItem:
    """A successful upload, correlated by pending id or submission index."""

    index: int
    result: UploadResult
    pending_id: str | None = None

    @property
    def url(self) -> str:
        return self.result.url or ""


@dataclass
class FailedItem:
    """A failed upload with its error message and failure kind."""

    index: int
    error: str
    kind: str
    pending_id: str | None = None
    filename: str | None = None


@dataclass
class UploadBatchResult:
    """Every submitted item lands in exactly one of successful or failed."""

    successful: list[UploadedItem] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)
    total_time_ms: float = 0.0

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)

    @property
    def successful_count(self) -> int:
        return len(self.successful)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def error_messages(self) -> list[str]:
        """Failure messages prefixed with the file they belong to, in submission order."""
        messages = []
        for item in sorted(self.failed, key=lambda f: f.index):
            prefix = f"{item.filename}: " if item.filename else ""
            messages.append(f"{prefix}{item.error}")
        return messages
