"""gallerysync: deferred batch uploads, gallery reconciliation and optimistic reordering."""

from .config import Settings, get_settings
from .editor import GalleryEditor, GalleryEntry, SaveOutcome
from .errors import (
    AssetNotFoundError,
    GallerySyncError,
    InvalidContainerError,
    ReconciliationError,
    RemoteRejectionError,
    TransportError,
    ValidationError,
)
from .models import (
    FailedItem,
    GalleryMetadataItem,
    MediaAsset,
    OrderAssignment,
    PendingMetadata,
    PendingUpload,
    SourceFile,
    UploadBatchResult,
    UploadedItem,
    UploadResult,
    UploadStatus,
    is_pending_id,
)
from .orchestrator import BatchUploadOrchestrator
from .ordering import OptimisticOrderSynchronizer, OrderedList, ReorderOutcome, SyncState
from .persistence import GalleryPersistence, HttpGalleryPersistence
from .reconciler import GalleryReconciler, MergeResult, PrimaryPolicy
from .registry import PendingUploadRegistry, SelectionResult, UploadPolicy

__all__ = [
    "AssetNotFoundError",
    "BatchUploadOrchestrator",
    "FailedItem",
    "GalleryEditor",
    "GalleryEntry",
    "GalleryMetadataItem",
    "GalleryPersistence",
    "GalleryReconciler",
    "GallerySyncError",
    "HttpGalleryPersistence",
    "InvalidContainerError",
    "MediaAsset",
    "MergeResult",
    "OptimisticOrderSynchronizer",
    "OrderAssignment",
    "OrderedList",
    "PendingMetadata",
    "PendingUpload",
    "PendingUploadRegistry",
    "PrimaryPolicy",
    "ReconciliationError",
    "RemoteRejectionError",
    "ReorderOutcome",
    "SaveOutcome",
    "SelectionResult",
    "Settings",
    "SourceFile",
    "SyncState",
    "TransportError",
    "UploadBatchResult",
    "UploadPolicy",
    "UploadResult",
    "UploadStatus",
    "UploadedItem",
    "ValidationError",
    "get_settings",
    "is_pending_id",
]
