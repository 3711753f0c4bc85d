"""Abstract base class for preview handle stores."""

from abc import ABC, abstractmethod

from gallerysync.models import SourceFile


class PreviewStore(ABC):
    """Allocates and releases revocable local preview handles.

    Every handle returned by ``create`` must be released by exactly one
    ``revoke`` call, or it stays allocated for the lifetime of the store.
    """

    @abstractmethod
    def create(self, source: SourceFile) -> str:
        """
        Allocate a preview handle for a selected file.

        Args:
            source: The selected file

        Returns:
            A local URI that resolves to the file contents
        """
        pass

    @abstractmethod
    def revoke(self, handle: str) -> bool:
        """
        Release a preview handle.

        Args:
            handle: URI returned from create

        Returns:
            True if the handle was live and is now released, False if it was
            unknown or already revoked. Never raises.
        """
        pass

    @abstractmethod
    def is_live(self, handle: str) -> bool:
        """Check whether a handle is still allocated."""
        pass

    @property
    @abstractmethod
    def live_count(self) -> int:
        """Number of handles currently allocated."""
        pass
