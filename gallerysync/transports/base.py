"""Abstract base class for upload transports."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from gallerysync.errors import InvalidContainerError
from gallerysync.models import SourceFile
from gallerysync.previews.local import sanitize_filename

DEFAULT_CONTAINER = "general"


@dataclass
class TransportReceipt:
    """Acknowledgment of a successful upload."""

    public_url: str  # Publicly resolvable URL
    storage_path: str | None = None  # Path within the remote storage, when known
    size_bytes: int | None = None
    filename: str | None = None
    asset_id: str | None = None  # id the remote service assigned, when it returns one


def validate_container(target_container: str | None) -> str:
    """Normalize a target container name.

    Empty names fall back to the default container. Names that could escape
    the storage root raise InvalidContainerError.
    """
    container = (target_container or "").strip()
    if not container:
        return DEFAULT_CONTAINER
    if ".." in container or "\\" in container or container.startswith("/"):
        raise InvalidContainerError(f"Invalid container name: {target_container!r}")
    return container


def storage_path_for(container: str, filename: str) -> str:
    """Key for a new object: ``{container}/{file_id}/{safe filename}``."""
    return f"{container}/{uuid.uuid4().hex}/{sanitize_filename(filename)}"


class UploadTransport(ABC):
    """Carries one file to remote storage per call.

    Implementations raise TransportError for network failures and timeouts,
    and RemoteRejectionError when the remote side refuses the file.
    """

    @abstractmethod
    async def upload(self, source: SourceFile, target_container: str) -> TransportReceipt:
        """
        Upload a file.

        Args:
            source: File bytes, name and MIME type
            target_container: Logical folder the file belongs to

        Returns:
            TransportReceipt with the public URL of the stored file
        """
        pass

    async def aclose(self) -> None:
        """Release any connections held by the transport."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
