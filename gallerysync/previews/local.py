"""Local filesystem preview store."""

import logging
import os
import re
import uuid
from pathlib import Path

from gallerysync.config import get_settings
from gallerysync.models import SourceFile
from gallerysync.previews.base import PreviewStore

logger = logging.getLogger(__name__)


def sanitize_filename(filename: str) -> str:
    """Sanitize filename to prevent path traversal and other issues."""
    # Remove path components
    filename = os.path.basename(filename)
    # Remove potentially dangerous characters, keep only safe ones
    filename = re.sub(r"[^\w\-_\.]", "_", filename)
    # Prevent empty filenames
    if not filename or filename.startswith("."):
        filename = f"file_{filename}"
    return filename


class LocalPreviewStore(PreviewStore):
    """Writes previews to a scratch directory and hands out ``file://`` URIs.

    Revoking a handle deletes the file and its directory.
    """

    def __init__(self, base_path: str | None = None):
        """
        Initialize local preview storage.

        Args:
            base_path: Scratch directory for preview files
        """
        settings = get_settings()
        self.base_path = Path(base_path or settings.PREVIEW_LOCAL_PATH)

        # Ensure base directory exists
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._resolved_base_path = self.base_path.resolve()
        self._live: set[str] = set()

    def _resolve_handle(self, handle: str) -> Path:
        """Resolve and validate that a handle points under the preview directory."""
        if not handle.startswith("file://"):
            raise ValueError("Invalid preview handle")
        candidate = Path(handle[len("file://") :]).resolve()
        if not str(candidate).startswith(str(self._resolved_base_path) + os.sep):
            raise ValueError("Invalid preview handle")
        return candidate

    def create(self, source: SourceFile) -> str:
        # Layout: {preview_id}/{filename}
        preview_dir = self._resolved_base_path / uuid.uuid4().hex
        preview_dir.mkdir(parents=True, exist_ok=True)

        file_path = preview_dir / sanitize_filename(source.filename)
        file_path.write_bytes(source.data)

        handle = f"file://{file_path}"
        self._live.add(handle)
        return handle

    def revoke(self, handle: str) -> bool:
        if handle not in self._live:
            return False
        self._live.discard(handle)

        try:
            file_path = self._resolve_handle(handle)
            file_path.unlink(missing_ok=True)
            file_path.parent.rmdir()
        except (OSError, ValueError) as e:
            # The handle is released either way; leftover files are only scratch data
            logger.warning("Could not remove preview file for %s: %s", handle, e)
        return True

    def is_live(self, handle: str) -> bool:
        return handle in self._live

    def get_file_path(self, handle: str) -> Path:
        """Get the filesystem path behind a live handle."""
        if handle not in self._live:
            raise KeyError(f"Preview handle is not live: {handle}")
        return self._resolve_handle(handle)

    @property
    def live_count(self) -> int:
        return len(self._live)
