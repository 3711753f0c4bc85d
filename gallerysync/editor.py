"""Gallery editor: one entity form's view of its gallery.

Sequences the registry, orchestrator, reconciler and persistence for a
single parent record. Persisted assets and pending uploads are edited
uniformly (alt text, primary flag, position); on save, pending uploads run
concurrently, the results are merged and the gallery metadata is persisted.
Partial success is allowed and reported as such.
"""

import itertools
import logging
from dataclasses import dataclass, field

from .config import get_settings
from .errors import AssetNotFoundError, GallerySyncError, ReconciliationError
from .models import (
    FailedItem,
    MediaAsset,
    PendingMetadata,
    SourceFile,
    UploadStatus,
)
from .ordering import move_item
from .orchestrator import BatchUploadOrchestrator
from .persistence import GalleryPersistence
from .reconciler import GalleryReconciler
from .registry import PendingUploadRegistry, SelectionResult

logger = logging.getLogger(__name__)


@dataclass
class GalleryEntry:
    """Uniform view over a persisted asset or a pending upload."""

    id: str
    url: str | None  # asset URL, or preview handle for pending uploads
    alt_text: str
    is_primary: bool
    display_order: int
    pending: bool = False
    status: UploadStatus | None = None
    error: str | None = None


@dataclass
class SaveOutcome:
    """What a save achieved. Uploads that failed stay pending for a retry."""

    gallery: list[MediaAsset]
    uploaded: int = 0
    errors: list[FailedItem] = field(default_factory=list)
    persisted: bool = False
    persist_error: GallerySyncError | None = None
    discarded: bool = False  # the editor was closed while saving

    @property
    def success(self) -> bool:
        return self.persisted and not self.errors

    @property
    def partial(self) -> bool:
        return bool(self.errors) and self.uploaded > 0

    def notice(self) -> str | None:
        """One user-facing message summarizing failures, or None if all went well."""
        parts = []
        if self.errors:
            attempted = self.uploaded + len(self.errors)
            details = "; ".join(
                f"{e.filename}: {e.error}" if e.filename else e.error for e in self.errors
            )
            parts.append(
                f"Uploaded {self.uploaded} of {attempted} images. "
                f"{len(self.errors)} failed: {details}"
            )
        if self.persist_error is not None:
            parts.append(f"Could not save gallery: {self.persist_error.message}")
        return " ".join(parts) or None


class GalleryEditor:
    """Edits one parent record's gallery.

    The pending-metadata map and preview handles belong to this instance;
    do not share an editor between forms.
    """

    def __init__(
        self,
        orchestrator: BatchUploadOrchestrator,
        existing: list[MediaAsset] | None = None,
        persistence: GalleryPersistence | None = None,
        registry: PendingUploadRegistry | None = None,
        reconciler: GalleryReconciler | None = None,
        target_container: str | None = None,
    ):
        self.orchestrator = orchestrator
        self.persistence = persistence
        self.registry = registry or PendingUploadRegistry(policy=orchestrator.policy)
        self.reconciler = reconciler or GalleryReconciler()
        self.target_container = target_container or get_settings().UPLOAD_DEFAULT_CONTAINER

        self._gallery: dict[str, MediaAsset] = {}
        self._order: list[str] = []
        self._metadata: dict[str, PendingMetadata] = {}
        self._primary_id: str | None = None
        self._ticks = itertools.count(1)
        self._saving = False
        self._closed = False

        self._load(existing or [])

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _load(self, assets: list[MediaAsset]) -> None:
        gallery = self.reconciler.normalize_order(assets)
        self._gallery = {asset.id: asset for asset in gallery}
        self._order = [asset.id for asset in gallery]

    def _ensure_editable(self) -> None:
        if self._closed:
            raise RuntimeError("Gallery editor is closed")
        if self._saving:
            raise RuntimeError("Gallery is being saved")

    def _ensure_known(self, item_id: str) -> None:
        if item_id not in self._gallery and item_id not in self._metadata:
            raise AssetNotFoundError(item_id)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def saving(self) -> bool:
        return self._saving

    @property
    def gallery(self) -> list[MediaAsset]:
        """Persisted assets in display order."""
        return [self._gallery[i] for i in self._order if i in self._gallery]

    @property
    def has_pending_uploads(self) -> bool:
        return bool(self._metadata)

    @property
    def failed_uploads(self) -> list[str]:
        return [p.id for p in self.registry.pending if p.status == UploadStatus.FAILED]

    @property
    def items(self) -> list[GalleryEntry]:
        """Assets and pending uploads in display order."""
        entries = []
        for position, item_id in enumerate(self._order):
            if item_id in self._gallery:
                asset = self._gallery[item_id]
                entries.append(
                    GalleryEntry(
                        id=asset.id,
                        url=asset.url,
                        alt_text=asset.alt_text,
                        is_primary=asset.is_primary,
                        display_order=position,
                    )
                )
            else:
                pending = self.registry.get(item_id)
                meta = self._metadata[item_id]
                entries.append(
                    GalleryEntry(
                        id=item_id,
                        url=pending.preview_handle if pending else None,
                        alt_text=meta.alt_text,
                        is_primary=meta.is_primary,
                        display_order=position,
                        pending=True,
                        status=pending.status if pending else None,
                        error=pending.error if pending else None,
                    )
                )
        return entries

    def select_files(
        self, files: list[SourceFile], target_container: str | None = None
    ) -> SelectionResult:
        """Queue selected files after the current items.

        Rejected files are reported in the result and never queued.
        """
        self._ensure_editable()
        selection = self.registry.create_many(files, target_container or self.target_container)
        for pending in selection.accepted:
            self._metadata[pending.id] = PendingMetadata()
            self._order.append(pending.id)
        return selection

    def set_alt_text(self, item_id: str, alt_text: str) -> None:
        self._ensure_editable()
        self._ensure_known(item_id)
        if item_id in self._metadata:
            self._metadata[item_id].alt_text = alt_text
        else:
            self._gallery[item_id] = self._gallery[item_id].model_copy(update={"alt_text": alt_text})

    def set_primary(self, item_id: str) -> None:
        """Make one item, pending or persisted, the only primary."""
        self._ensure_editable()
        self._ensure_known(item_id)

        tick = next(self._ticks)
        for pending_id, meta in self._metadata.items():
            meta.is_primary = pending_id == item_id
            meta.primary_marked_at = tick if pending_id == item_id else None

        if item_id in self._gallery:
            gallery = self.reconciler.set_primary(self.gallery, item_id)
        else:
            gallery = [a.model_copy(update={"is_primary": False}) for a in self.gallery]
        self._gallery = {asset.id: asset for asset in gallery}
        self._primary_id = item_id

    def move(self, from_index: int, to_index: int) -> None:
        self._ensure_editable()
        self._order = move_item(self._order, from_index, to_index)

    def remove(self, item_id: str) -> None:
        """Drop an item. Pending uploads release their preview at once."""
        self._ensure_editable()
        self._ensure_known(item_id)

        if item_id in self._metadata:
            del self._metadata[item_id]
            self.registry.remove(item_id)
        else:
            del self._gallery[item_id]
        self._order.remove(item_id)

        if self._primary_id == item_id:
            self._primary_id = None

    def retry_failed(self) -> list[str]:
        """Re-queue failed uploads; the next save uploads them again."""
        self._ensure_editable()
        retried = []
        for pending in self.registry.pending:
            if pending.status == UploadStatus.FAILED:
                pending.status = UploadStatus.QUEUED
                pending.progress = 0
                pending.error = None
                retried.append(pending.id)
        return retried

    def _snapshot_positions(self) -> tuple[list[MediaAsset], dict[str, PendingMetadata]]:
        """Freeze current positions into asset orders and pending metadata."""
        existing = []
        metadata = {}
        for position, item_id in enumerate(self._order):
            if item_id in self._gallery:
                existing.append(self._gallery[item_id].model_copy(update={"display_order": position}))
            else:
                metadata[item_id] = self._metadata[item_id].model_copy(
                    update={"display_order": position}
                )
        return existing, metadata

    async def save(self, parent_path: str) -> SaveOutcome:
        """Upload pending files, merge them in and persist the gallery.

        Upload failures do not block the save: successful uploads are
        committed and the failures are reported in the outcome.
        """
        self._ensure_editable()
        self._saving = True
        try:
            return await self._save(parent_path)
        finally:
            self._saving = False

    def _rebuild_order(self, previous_order: list[str], gallery: list[MediaAsset]) -> list[str]:
        """Lay out ``gallery`` over the slots of ``previous_order``.

        Uploads still pending keep their slots; every other slot takes the
        next asset of the gallery, and leftover assets go last.
        """
        assets = iter([asset.id for asset in gallery])
        order = []
        for item_id in previous_order:
            if item_id in self._metadata:
                order.append(item_id)
            else:
                order.extend(itertools.islice(assets, 1))
        order.extend(assets)
        return order

    def _commit(self, previous_order: list[str], gallery: list[MediaAsset]) -> None:
        self._gallery = {asset.id: asset for asset in gallery}
        self._order = self._rebuild_order(previous_order, gallery)

    async def _save(self, parent_path: str) -> SaveOutcome:
        previous_order = list(self._order)
        existing, metadata = self._snapshot_positions()
        pending = [self.registry.get(pid) for pid in metadata]
        pending = [p for p in pending if p is not None]

        batch = await self.orchestrator.process_pending_uploads(pending)
        if self._closed:
            logger.info("Editor closed during upload; discarding results")
            return SaveOutcome(gallery=self.gallery, discarded=True)

        merged = self.reconciler.merge(existing, batch, metadata, primary_id=self._primary_id)

        # Merged uploads are assets now; their previews are no longer needed
        for pending_id in merged.added:
            self.registry.remove(pending_id)
            self._metadata.pop(pending_id, None)
        self._commit(previous_order, merged.gallery)

        # The explicit choice is now materialized in the asset flags
        if any(asset.is_primary for asset in merged.gallery):
            self._primary_id = None
            for meta in self._metadata.values():
                meta.is_primary = False
                meta.primary_marked_at = None

        outcome = SaveOutcome(gallery=merged.gallery, uploaded=len(merged.added), errors=merged.errors)

        if self.persistence is not None:
            merged_order = list(self._order)
            try:
                stored = await self.persistence.upsert_gallery(
                    parent_path, self.reconciler.to_metadata_items(merged.gallery)
                )
            except GallerySyncError as e:
                logger.warning("Saving gallery for %s failed: %s", parent_path, e)
                outcome.persist_error = e
            else:
                outcome.persisted = True
                if stored is not None:
                    try:
                        outcome.gallery = self.reconciler.normalize_order(stored)
                    except ReconciliationError as e:
                        logger.warning("Keeping local gallery for %s: %s", parent_path, e)

            if self._closed:
                outcome.discarded = True
                return outcome
            if outcome.gallery is not merged.gallery:
                self._commit(merged_order, outcome.gallery)

        if outcome.errors:
            logger.info("Partial save for %s: %s", parent_path, outcome.notice())
        return outcome

    def close(self) -> None:
        """Release every preview. Late upload results are ignored afterwards."""
        if self._closed:
            return
        self._closed = True
        released = self.registry.cleanup_all()
        self._metadata.clear()
        logger.debug("Gallery editor closed, released %d previews", released)

