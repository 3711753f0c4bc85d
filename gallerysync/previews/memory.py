"""In-memory preview store."""

import uuid

from gallerysync.models import SourceFile
from gallerysync.previews.base import PreviewStore


class MemoryPreviewStore(PreviewStore):
    """Keeps preview bytes in memory under ``preview://`` handles."""

    SCHEME = "preview://"

    def __init__(self):
        self._previews: dict[str, bytes] = {}

    def create(self, source: SourceFile) -> str:
        handle = f"{self.SCHEME}{uuid.uuid4()}"
        self._previews[handle] = source.data
        return handle

    def revoke(self, handle: str) -> bool:
        return self._previews.pop(handle, None) is not None

    def is_live(self, handle: str) -> bool:
        return handle in self._previews

    def read(self, handle: str) -> bytes:
        """Resolve a live handle to its bytes."""
        try:
            return self._previews[handle]
        except KeyError:
            raise KeyError(f"Preview handle is not live: {handle}") from None

    @property
    def live_count(self) -> int:
        return len(self._previews)
