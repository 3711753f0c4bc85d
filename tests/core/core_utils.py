"""Test doubles and helpers for the gallerysync unit tests.

Provides helpers for:
- Building selected files
- A scriptable upload transport
- A recording persistence backend
"""

import asyncio

from gallerysync.models import GalleryMetadataItem, MediaAsset, OrderAssignment, SourceFile
from gallerysync.persistence import GalleryPersistence
from gallerysync.transports.base import TransportReceipt, UploadTransport

# 1x1 pixel red PNG
PNG_DATA = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01"
    b"\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde\x00\x00\x00"
    b"\x0cIDATx\x9cc\xf8\xcf\xc0\x00\x00\x00\x03\x00\x01\x00"
    b"\x05\xfe\xd4\x00\x00\x00\x00IEND\xaeB`\x82"
)

CDN = "https://cdn.example.com"


def make_file(name: str = "photo.png", size: int | None = None, content_type: str = "image/png"):
    """Create a selected file. ``size`` pads the PNG to an exact byte count."""
    data = PNG_DATA if size is None else PNG_DATA[:size].ljust(size, b"\x00")
    return SourceFile(data=data, filename=name, content_type=content_type)


def make_gallery(*names: str, primary: str | None = None) -> list[MediaAsset]:
    """Persisted assets with ids equal to their names, in the given order."""
    return [
        MediaAsset(
            id=name,
            url=f"{CDN}/{name}.png",
            alt_text=name,
            is_primary=name == primary,
            display_order=i,
        )
        for i, name in enumerate(names)
    ]


class FakeTransport(UploadTransport):
    """Transport double with scripted failures, delays and server ids, keyed by filename."""

    def __init__(
        self,
        failures: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
        asset_ids: dict[str, str] | None = None,
    ):
        self.failures = failures or {}
        self.delays = delays or {}
        self.asset_ids = asset_ids or {}
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def upload(self, source: SourceFile, target_container: str) -> TransportReceipt:
        self.calls.append((source.filename, target_container))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(source.filename, 0))
            if source.filename in self.failures:
                raise self.failures[source.filename]
            return TransportReceipt(
                public_url=f"{CDN}/{target_container}/{source.filename}",
                size_bytes=source.size,
                filename=source.filename,
                asset_id=self.asset_ids.get(source.filename),
            )
        finally:
            self.in_flight -= 1


class RecordingPersistence(GalleryPersistence):
    """Persistence double that records calls and can be told to fail.

    ``stored`` is returned from every upsert as is; ``assign_ids`` instead
    echoes the upserted items back with server ids.
    """

    def __init__(
        self,
        error: Exception | None = None,
        assign_ids: bool = False,
        stored: list[MediaAsset] | None = None,
    ):
        self.error = error
        self.assign_ids = assign_ids
        self.stored = stored
        self.upserts: list[tuple[str, list[GalleryMetadataItem]]] = []
        self.reorders: list[tuple[str, list[OrderAssignment]]] = []

    async def upsert_gallery(self, parent_path, items):
        self.upserts.append((parent_path, items))
        if self.error is not None:
            raise self.error
        if self.stored is not None:
            return self.stored
        if not self.assign_ids:
            return None
        return [
            MediaAsset(
                id=f"srv-{item.display_order}",
                url=item.url,
                alt_text=item.alt_text,
                is_primary=item.is_primary,
                display_order=item.display_order,
            )
            for item in items
        ]

    async def reorder(self, endpoint, assignments):
        self.reorders.append((endpoint, assignments))
        if self.error is not None:
            raise self.error
