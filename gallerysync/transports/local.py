"""Local filesystem upload transport, for development and offline use."""

import os
from pathlib import Path

import aiofiles
import aiofiles.os

from gallerysync.config import get_settings
from gallerysync.errors import TransportError
from gallerysync.models import SourceFile
from gallerysync.transports.base import TransportReceipt, UploadTransport, storage_path_for


class LocalUploadTransport(UploadTransport):
    """Writes uploads below a directory that a web server exposes at ``/media/files``."""

    def __init__(self, base_path: str | None = None, base_url: str | None = None):
        """
        Args:
            base_path: Root directory for stored uploads
            base_url: Origin that serves them, e.g. http://localhost:9000
        """
        settings = get_settings()
        self.root = Path(base_path or settings.STORAGE_LOCAL_PATH)
        self.base_url = (base_url or settings.STORAGE_PUBLIC_URL).rstrip("/")

        self.root.mkdir(parents=True, exist_ok=True)
        self._root_resolved = self.root.resolve()

    def path_for(self, storage_path: str) -> Path:
        """Filesystem path of a stored upload. Raises ValueError outside the root."""
        path = (self._root_resolved / storage_path).resolve()
        if not str(path).startswith(str(self._root_resolved) + os.sep):
            raise ValueError(f"{storage_path!r} is outside the storage root")
        return path

    def url_for(self, storage_path: str) -> str:
        return f"{self.base_url}/media/files/{storage_path}"

    async def upload(self, source: SourceFile, target_container: str) -> TransportReceipt:
        storage_path = storage_path_for(target_container, source.filename)
        try:
            path = self.path_for(storage_path)
        except ValueError as e:
            raise TransportError(f"Cannot store file under {target_container!r}") from e

        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(source.data)
        except OSError as e:
            raise TransportError(f"Could not write {path.name}: {e.strerror or e}") from e

        return TransportReceipt(
            public_url=self.url_for(storage_path),
            storage_path=storage_path,
            size_bytes=source.size,
            filename=path.name,
        )

    async def exists(self, storage_path: str) -> bool:
        try:
            path = self.path_for(storage_path)
        except ValueError:
            return False
        return await aiofiles.os.path.isfile(path)
