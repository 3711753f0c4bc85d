"""Upload transport module with factory function."""

from gallerysync.config import Settings, get_settings
from gallerysync.transports.base import (
    DEFAULT_CONTAINER,
    TransportReceipt,
    UploadTransport,
    validate_container,
)
from gallerysync.transports.http import HttpUploadTransport
from gallerysync.transports.local import LocalUploadTransport

__all__ = [
    "DEFAULT_CONTAINER",
    "TransportReceipt",
    "UploadTransport",
    "validate_container",
    "create_transport",
    "HttpUploadTransport",
    "LocalUploadTransport",
    "S3UploadTransport",
    "R2UploadTransport",
]


# Lazy imports for S3 and R2 to avoid loading boto when not used
def __getattr__(name: str):
    if name == "S3UploadTransport":
        from gallerysync.transports.s3 import S3UploadTransport

        return S3UploadTransport
    elif name == "R2UploadTransport":
        from gallerysync.transports.r2 import R2UploadTransport

        return R2UploadTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def create_transport(settings: Settings | None = None) -> UploadTransport:
    """
    Build the configured upload transport.

    Returns a new instance on every call. Callers own its lifecycle and should
    close it (``await transport.aclose()``) when their session ends.
    """
    settings = settings or get_settings()
    transport_type = settings.UPLOAD_TRANSPORT

    if transport_type == "http":
        return HttpUploadTransport(
            api_base_url=settings.API_BASE_URL,
            token=settings.API_TOKEN,
            timeout=settings.UPLOAD_TIMEOUT_SECONDS,
        )
    elif transport_type == "local":
        return LocalUploadTransport(
            base_path=settings.STORAGE_LOCAL_PATH,
            base_url=settings.STORAGE_PUBLIC_URL,
        )
    elif transport_type == "s3":
        # Import here to avoid requiring boto when not using S3
        from gallerysync.transports.s3 import S3UploadTransport

        return S3UploadTransport.from_settings(settings)
    elif transport_type == "r2":
        # Import here to avoid requiring boto when not using R2
        from gallerysync.transports.r2 import R2UploadTransport

        return R2UploadTransport.from_settings(settings)
    else:
        raise ValueError(f"Unknown upload transport: {transport_type}")
