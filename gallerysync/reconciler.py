"""Gallery reconciliation.

Merges persisted assets with freshly uploaded ones into one ordered gallery.
All functions are pure: they return new lists of new assets and never mutate
their inputs, so no caller can observe a half-applied change.

Two invariants hold for every gallery these functions return:

* at most one asset has ``is_primary`` set;
* ``display_order`` values are exactly ``0..n-1``.

Default primary policy: when no asset is primary, the first asset (lowest
display order) becomes primary. Record types without a featured item use
``PrimaryPolicy.NONE`` instead.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from pydantic import ValidationError as PydanticValidationError

from .errors import AssetNotFoundError, ReconciliationError
from .models import (
    FailedItem,
    GalleryMetadataItem,
    MediaAsset,
    PendingMetadata,
    UploadBatchResult,
    is_pending_id,
    new_asset_id,
)
from .ordering import move_item


class PrimaryPolicy(str, Enum):
    FIRST = "first"  # first item becomes primary when none is
    NONE = "none"  # leave the gallery without a primary


@dataclass
class MergeResult:
    """Merged gallery plus the uploads that did not make it in."""

    gallery: list[MediaAsset]
    errors: list[FailedItem] = field(default_factory=list)
    # pending id -> asset created from that upload
    added: dict[str, MediaAsset] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def error_messages(self) -> list[str]:
        return [f"{e.filename}: {e.error}" if e.filename else e.error for e in self.errors]


def _check_unique_ids(gallery: Iterable[MediaAsset]) -> None:
    seen = set()
    for asset in gallery:
        if asset.id in seen:
            raise ReconciliationError(f"Duplicate asset id in gallery: {asset.id}")
        seen.add(asset.id)


def _renumber(ordered: list[MediaAsset], primary_id: str | None) -> list[MediaAsset]:
    return [
        asset.model_copy(update={"display_order": i, "is_primary": asset.id == primary_id})
        for i, asset in enumerate(ordered)
    ]


def normalize_order(
    gallery: Iterable[MediaAsset], policy: PrimaryPolicy = PrimaryPolicy.FIRST
) -> list[MediaAsset]:
    """Sort by display order (stable for ties) and renumber from 0.

    Applies the primary policy when nothing is primary. Raises
    ReconciliationError for duplicate ids or more than one primary.
    """
    gallery = list(gallery)
    _check_unique_ids(gallery)

    primaries = [a.id for a in gallery if a.is_primary]
    if len(primaries) > 1:
        raise ReconciliationError(f"More than one primary asset: {', '.join(primaries)}")

    ordered = sorted(gallery, key=lambda a: a.display_order)

    primary_id = primaries[0] if primaries else None
    if primary_id is None and ordered and policy == PrimaryPolicy.FIRST:
        primary_id = ordered[0].id

    return _renumber(ordered, primary_id)


def set_primary(gallery: Iterable[MediaAsset], target_id: str) -> list[MediaAsset]:
    """Make ``target_id`` the only primary asset.

    Raises AssetNotFoundError, leaving the input untouched, if the id is absent.
    """
    gallery = list(gallery)
    if not any(asset.id == target_id for asset in gallery):
        raise AssetNotFoundError(target_id)
    return [asset.model_copy(update={"is_primary": asset.id == target_id}) for asset in gallery]


def remove(
    gallery: Iterable[MediaAsset], asset_id: str, policy: PrimaryPolicy = PrimaryPolicy.FIRST
) -> list[MediaAsset]:
    """Drop one asset and close the gap it leaves in the order."""
    gallery = list(gallery)
    remaining = [asset for asset in gallery if asset.id != asset_id]
    if len(remaining) == len(gallery):
        raise AssetNotFoundError(asset_id)
    return normalize_order(remaining, policy)


def move(
    gallery: Iterable[MediaAsset],
    from_index: int,
    to_index: int,
    policy: PrimaryPolicy = PrimaryPolicy.FIRST,
) -> list[MediaAsset]:
    """Move the asset at ``from_index`` to ``to_index`` and renumber."""
    ordered = normalize_order(gallery, policy)
    moved = move_item(ordered, from_index, to_index)
    return [asset.model_copy(update={"display_order": i}) for i, asset in enumerate(moved)]


def to_metadata_items(
    gallery: Iterable[MediaAsset], policy: PrimaryPolicy = PrimaryPolicy.FIRST
) -> list[GalleryMetadataItem]:
    """Canonical upsert payload: normalized first, so orders are dense."""
    return [
        GalleryMetadataItem(
            url=asset.url,
            alt_text=asset.alt_text,
            is_primary=asset.is_primary,
            display_order=asset.display_order,
        )
        for asset in normalize_order(gallery, policy)
    ]


def _choose_primary(
    existing: list[MediaAsset],
    added: dict[str, MediaAsset],
    metadata: Mapping[str, PendingMetadata],
    submission_index: dict[str, int],
    failed_ids: set[str],
    primary_id: str | None,
) -> str | None:
    """Resolve which asset ends up primary after a merge.

    An explicit ``primary_id`` (the target of the latest set_primary call)
    wins. Without one, an existing primary is kept over upload flags, and
    among flagged uploads the most recently flagged wins. Upload completion
    order never matters.
    """
    if primary_id is not None:
        if is_pending_id(primary_id):
            if primary_id in added:
                return added[primary_id].id
            if primary_id not in failed_ids:
                raise AssetNotFoundError(primary_id)
            # The chosen upload failed; fall through to the flags
        elif any(asset.id == primary_id for asset in existing):
            return primary_id
        else:
            raise AssetNotFoundError(primary_id)

    for asset in existing:
        if asset.is_primary:
            return asset.id

    flagged = [pid for pid in added if metadata.get(pid, PendingMetadata()).is_primary]
    if not flagged:
        return None

    def recency(pending_id: str) -> tuple[int, int]:
        marked_at = metadata[pending_id].primary_marked_at
        return (marked_at if marked_at is not None else -1, -submission_index[pending_id])

    return added[max(flagged, key=recency)].id


def merge(
    existing: Iterable[MediaAsset],
    batch_result: UploadBatchResult,
    metadata_by_pending_id: Mapping[str, PendingMetadata],
    primary_id: str | None = None,
    policy: PrimaryPolicy = PrimaryPolicy.FIRST,
) -> MergeResult:
    """Fold successful uploads into a gallery.

    Each successful upload becomes a MediaAsset built from its URL and the
    metadata recorded for its pending id before upload. Uploads are placed
    at their requested display order; ties go to existing assets first, then
    to uploads in submission order. Uploads without a requested order go to
    the end. Failed uploads are left out and returned in ``errors``.
    """
    existing = list(existing)
    _check_unique_ids(existing)
    if len([a for a in existing if a.is_primary]) > 1:
        raise ReconciliationError("Existing gallery has more than one primary asset")

    # (display order, group, submission index, asset)
    placed: list[tuple[int, int, int, MediaAsset]] = [
        (asset.display_order, 0, i, asset) for i, asset in enumerate(existing)
    ]
    tail = max((a.display_order for a in existing), default=-1) + 1

    added: dict[str, MediaAsset] = {}
    submission_index: dict[str, int] = {}
    taken_ids = {asset.id for asset in existing}
    for item in sorted(batch_result.successful, key=lambda s: s.index):
        if not item.result.url:
            raise ReconciliationError(f"Successful upload without a URL: {item.pending_id}")

        meta = PendingMetadata()
        if item.pending_id is not None:
            meta = metadata_by_pending_id.get(item.pending_id, meta)

        order = meta.display_order if meta.display_order is not None else tail + item.index
        asset_id = item.result.asset_id
        if not asset_id or asset_id in taken_ids:
            asset_id = new_asset_id()
        try:
            asset = MediaAsset(
                id=asset_id,
                url=item.result.url,
                alt_text=meta.alt_text,
                is_primary=False,
                display_order=max(order, 0),
            )
        except PydanticValidationError as e:
            raise ReconciliationError(f"Upload {item.pending_id} cannot become an asset: {e}") from e
        taken_ids.add(asset.id)
        placed.append((asset.display_order, 1, item.index, asset))

        if item.pending_id is not None:
            added[item.pending_id] = asset
            submission_index[item.pending_id] = item.index

    failed_ids = {f.pending_id for f in batch_result.failed if f.pending_id is not None}
    chosen = _choose_primary(
        existing, added, metadata_by_pending_id, submission_index, failed_ids, primary_id
    )

    ordered = [asset for _, _, _, asset in sorted(placed, key=lambda p: p[:3])]
    if chosen is None and ordered and policy == PrimaryPolicy.FIRST:
        chosen = ordered[0].id

    errors = sorted(batch_result.failed, key=lambda f: f.index)
    return MergeResult(gallery=_renumber(ordered, chosen), errors=errors, added=added)


class GalleryReconciler:
    """Binds the reconciliation functions to one primary policy."""

    def __init__(self, policy: PrimaryPolicy = PrimaryPolicy.FIRST):
        self.policy = policy

    def merge(
        self,
        existing: Iterable[MediaAsset],
        batch_result: UploadBatchResult,
        metadata_by_pending_id: Mapping[str, PendingMetadata],
        primary_id: str | None = None,
    ) -> MergeResult:
        return merge(existing, batch_result, metadata_by_pending_id, primary_id, self.policy)

    def normalize_order(self, gallery: Iterable[MediaAsset]) -> list[MediaAsset]:
        return normalize_order(gallery, self.policy)

    def set_primary(self, gallery: Iterable[MediaAsset], target_id: str) -> list[MediaAsset]:
        return set_primary(gallery, target_id)

    def remove(self, gallery: Iterable[MediaAsset], asset_id: str) -> list[MediaAsset]:
        return remove(gallery, asset_id, self.policy)

    def move(self, gallery: Iterable[MediaAsset], from_index: int, to_index: int) -> list[MediaAsset]:
        return move(gallery, from_index, to_index, self.policy)

    def to_metadata_items(self, gallery: Iterable[MediaAsset]) -> list[GalleryMetadataItem]:
        return to_metadata_items(gallery, self.policy)
