"""Error taxonomy for uploads, reconciliation and reordering.

Validation errors surface at selection time and never enter a batch.
Transport and remote errors are captured per item and never cross the
batch boundary. Reconciliation errors signal misuse and are raised.
"""


class GallerySyncError(Exception):
    """Base class for all gallerysync errors."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GallerySyncError):
    """A file was rejected before any network I/O (type, size, count)."""

    kind = "validation"

    def __init__(self, message: str, code: str = "invalid_file", filename: str | None = None):
        super().__init__(message)
        self.code = code
        self.filename = filename


class TransportError(GallerySyncError):
    """Network failure or timeout while talking to the remote service."""

    kind = "transport"


class RemoteRejectionError(GallerySyncError):
    """The remote service answered but refused the request."""

    kind = "remote"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ReconciliationError(GallerySyncError):
    """A gallery invariant could not be satisfied. Indicates caller misuse."""

    kind = "reconciliation"


class AssetNotFoundError(ReconciliationError, LookupError):
    """The referenced item does not exist in the gallery."""

    def __init__(self, item_id: str):
        super().__init__(f"Item not found in gallery: {item_id}")
        self.item_id = item_id


class InvalidContainerError(GallerySyncError, ValueError):
    """The upload target container name is not acceptable."""

    kind = "container"
