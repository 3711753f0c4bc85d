"""Preview store module with factory function."""

from gallerysync.config import Settings, get_settings
from gallerysync.previews.base import PreviewStore
from gallerysync.previews.local import LocalPreviewStore
from gallerysync.previews.memory import MemoryPreviewStore

__all__ = [
    "PreviewStore",
    "MemoryPreviewStore",
    "LocalPreviewStore",
    "create_preview_store",
]


def create_preview_store(settings: Settings | None = None) -> PreviewStore:
    """
    Build the configured preview store.

    A new store is returned on every call; each editor session owns its own.
    """
    settings = settings or get_settings()

    if settings.PREVIEW_BACKEND == "memory":
        return MemoryPreviewStore()
    elif settings.PREVIEW_BACKEND == "local":
        return LocalPreviewStore(base_path=settings.PREVIEW_LOCAL_PATH)
    else:
        raise ValueError(f"Unknown preview backend: {settings.PREVIEW_BACKEND}")
