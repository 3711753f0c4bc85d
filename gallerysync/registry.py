"""Pending upload registry.

Creates and disposes local pending-upload handles: the selected file, its
revocable preview, and the container it will be uploaded to. Performs no
network I/O.
"""

import logging
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from .config import DEFAULT_ALLOWED_TYPES, Settings, get_settings
from .errors import ValidationError
from .models import PendingUpload, SourceFile, new_pending_id
from .previews import MemoryPreviewStore, PreviewStore
from .transports.base import validate_container

logger = logging.getLogger(__name__)


class UploadPolicy(BaseModel):
    """Caller-supplied rules a file must pass before it may be queued."""

    max_size_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    allowed_types: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_TYPES))
    max_files: int | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "UploadPolicy":
        settings = settings or get_settings()
        return cls(
            max_size_bytes=settings.max_upload_bytes,
            allowed_types=settings.UPLOAD_ALLOWED_TYPES,
            max_files=settings.UPLOAD_MAX_FILES,
        )

    def check(self, source: SourceFile, current_count: int = 0) -> None:
        """Raise ValidationError if the file may not be uploaded."""
        if self.max_files is not None and current_count >= self.max_files:
            raise ValidationError(
                f"Too many files. At most {self.max_files} files can be added.",
                code="too_many_files",
                filename=source.filename,
            )

        if source.size > self.max_size_bytes:
            max_mb = self.max_size_bytes / (1024 * 1024)
            raise ValidationError(
                f"File size must be less than {max_mb:g}MB",
                code="file_too_large",
                filename=source.filename,
            )

        if source.content_type not in self.allowed_types:
            raise ValidationError(
                f"Invalid file type: {source.content_type}. Only images are allowed",
                code="unsupported_type",
                filename=source.filename,
            )


@dataclass
class SelectionResult:
    """Outcome of selecting several files at once."""

    accepted: list[PendingUpload] = field(default_factory=list)
    rejected: list[ValidationError] = field(default_factory=list)


class PendingUploadRegistry:
    """Owns the pending uploads and preview handles of one editing session."""

    def __init__(self, policy: UploadPolicy | None = None, previews: PreviewStore | None = None):
        self.policy = policy or UploadPolicy()
        self.previews = previews or MemoryPreviewStore()
        self._uploads: dict[str, PendingUpload] = {}

    def __len__(self) -> int:
        return len(self._uploads)

    def __contains__(self, pending_id: object) -> bool:
        return pending_id in self._uploads

    @property
    def pending(self) -> list[PendingUpload]:
        """Live pending uploads in selection order."""
        return list(self._uploads.values())

    def get(self, pending_id: str) -> PendingUpload | None:
        return self._uploads.get(pending_id)

    def create_pending_upload(self, file: SourceFile, target_container: str) -> PendingUpload:
        """Validate a file and allocate its preview.

        Raises ValidationError without allocating anything if the file
        violates the policy.
        """
        container = validate_container(target_container)
        self.policy.check(file, current_count=len(self._uploads))

        pending = PendingUpload(
            id=new_pending_id(),
            source=file,
            preview_handle=self.previews.create(file),
            target_container=container,
        )
        self._uploads[pending.id] = pending
        logger.debug("Queued %s as %s (%d bytes)", file.filename, pending.id, file.size)
        return pending

    def create_many(self, files: list[SourceFile], target_container: str) -> SelectionResult:
        """Queue several files, collecting validation failures instead of raising."""
        selection = SelectionResult()
        for file in files:
            try:
                selection.accepted.append(self.create_pending_upload(file, target_container))
            except ValidationError as e:
                logger.info("Rejected %s: %s", file.filename, e.message)
                selection.rejected.append(e)
        return selection

    def cleanup(self, pending: PendingUpload) -> None:
        """Revoke the preview of a pending upload and forget it.

        Calling this again for the same upload is a no-op.
        """
        self._uploads.pop(pending.id, None)

        if pending.disposed or pending.preview_handle is None:
            logger.debug("Preview for %s already released", pending.id)
            pending.disposed = True
            return

        handle = pending.preview_handle
        pending.preview_handle = None
        pending.disposed = True
        if not self.previews.revoke(handle):
            logger.warning("Preview handle for %s was not live", pending.id)

    def remove(self, pending_id: str) -> bool:
        """Drop a pending upload by id. Returns False if it is unknown."""
        pending = self._uploads.get(pending_id)
        if pending is None:
            return False
        self.cleanup(pending)
        return True

    def cleanup_all(self) -> int:
        """Release every live handle, e.g. when the editing session ends."""
        uploads = list(self._uploads.values())
        for pending in uploads:
            self.cleanup(pending)
        return len(uploads)
