"""Tests for gallery metadata and reorder persistence over HTTP."""

import asyncio
import json

import httpx
import pytest

from gallerysync.errors import RemoteRejectionError, TransportError
from gallerysync.models import GalleryMetadataItem, OrderAssignment
from gallerysync.ordering import OptimisticOrderSynchronizer, OrderedList
from gallerysync.persistence import HttpGalleryPersistence

API = "http://api.test/api/v1"

ITEMS = [
    GalleryMetadataItem(url="https://cdn/a.png", alt_text="Fort", is_primary=True, display_order=0),
    GalleryMetadataItem(url="https://cdn/b.png", alt_text="", is_primary=False, display_order=1),
]


def persistence(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpGalleryPersistence(api_base_url=API, client=client, **kwargs)


class TestUpsertGallery:
    """Tests for saving a parent record's gallery."""

    def test_sends_canonical_payload(self):
        """Test the request body and that stored assets are returned."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "success": True,
                    "data": [
                        {"id": "11", "image_url": "https://cdn/a.png", "alt_text": "Fort",
                         "is_primary": True, "display_order": 0},
                        {"id": "12", "image_url": "https://cdn/b.png", "display_order": 1},
                    ],
                },
            )

        stored = asyncio.run(persistence(handler).upsert_gallery("governates/7/images", ITEMS))

        assert seen["method"] == "POST"
        assert seen["url"] == f"{API}/governates/7/images"
        assert seen["body"] == {
            "images": [
                {"image_url": "https://cdn/a.png", "alt_text": "Fort", "is_primary": True, "display_order": 0},
                {"image_url": "https://cdn/b.png", "alt_text": "", "is_primary": False, "display_order": 1},
            ]
        }
        assert [(a.id, a.url, a.is_primary) for a in stored] == [
            ("11", "https://cdn/a.png", True),
            ("12", "https://cdn/b.png", False),
        ]

    def test_wrapped_images_payload(self):
        """Test responses that nest the images under a named key."""

        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {"wilayah_images": [{"id": "3", "url": "https://cdn/c.png"}]},
                },
            )

        stored = asyncio.run(persistence(handler).upsert_gallery("wilayahs/2/images", ITEMS))

        assert [a.id for a in stored] == ["3"]

    def test_no_data_returns_none(self):
        """Test that a bare success envelope yields no stored assets."""

        def handler(request):
            return httpx.Response(200, json={"success": True, "message": "Images saved"})

        assert asyncio.run(persistence(handler).upsert_gallery("lists/1/images", ITEMS)) is None

    def test_unreadable_success_returns_none(self):
        """Test that an unexpected success body is tolerated."""

        def handler(request):
            return httpx.Response(200, json={"success": True, "data": {"count": 2}})

        assert asyncio.run(persistence(handler).upsert_gallery("lists/1/images", ITEMS)) is None

    def test_numeric_ids_become_strings(self):
        """Test that integer ids from the database are accepted."""

        def handler(request):
            return httpx.Response(
                201, json={"success": True, "data": [{"id": 11, "image_url": "https://cdn/a.png"}]}
            )

        stored = asyncio.run(persistence(handler).upsert_gallery("governates/7/images", ITEMS))

        assert [a.id for a in stored] == ["11"]

    def test_inconsistent_stored_images_return_none(self):
        """Test that stored images with two primaries are not handed back."""

        def handler(request):
            return httpx.Response(
                201,
                json={
                    "success": True,
                    "data": [
                        {"id": "11", "image_url": "https://cdn/a.png", "is_primary": True},
                        {"id": "12", "image_url": "https://cdn/b.png", "is_primary": True,
                         "display_order": 1},
                    ],
                },
            )

        assert asyncio.run(persistence(handler).upsert_gallery("governates/7/images", ITEMS)) is None

    def test_pending_id_in_stored_images_returns_none(self):
        """Test that a stored image carrying a pending-upload id is not trusted."""

        def handler(request):
            return httpx.Response(
                201,
                json={"success": True, "data": [{"id": "pending-abc", "image_url": "https://cdn/a.png"}]},
            )

        assert asyncio.run(persistence(handler).upsert_gallery("governates/7/images", ITEMS)) is None

    def test_success_false_raises(self):
        """Test that an envelope reporting failure is a rejection."""

        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Parent not found"})

        with pytest.raises(RemoteRejectionError, match="Parent not found"):
            asyncio.run(persistence(handler).upsert_gallery("lists/9/images", ITEMS))

    def test_error_status(self):
        """Test the error message fallback for error statuses."""

        def handler(request):
            return httpx.Response(500, content=b"")

        with pytest.raises(RemoteRejectionError) as exc_info:
            asyncio.run(persistence(handler).upsert_gallery("lists/1/images", ITEMS))

        assert exc_info.value.message == "API Error: 500 Internal Server Error"
        assert exc_info.value.status_code == 500

    def test_timeout(self):
        """Test that a timeout is a transport error."""

        def handler(request):
            raise httpx.WriteTimeout("slow", request=request)

        with pytest.raises(TransportError):
            asyncio.run(persistence(handler).upsert_gallery("lists/1/images", ITEMS))


class TestReorder:
    """Tests for persisting list order."""

    def test_body_uses_configured_keys(self):
        """Test that the reorder body follows the endpoint's field names."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "message": "Lists reordered"})

        backend = persistence(
            handler, reorder_body_key="list_orders", reorder_id_field="list_id"
        )
        asyncio.run(
            backend.reorder(
                "lists/reorder",
                [OrderAssignment(item_id="b", new_order=1), OrderAssignment(item_id="a", new_order=2)],
            )
        )

        assert seen["method"] == "PUT"
        assert seen["body"] == {
            "list_orders": [{"list_id": "b", "sort_order": 1}, {"list_id": "a", "sort_order": 2}]
        }

    def test_empty_body_is_success(self):
        """Test that a 204 response is accepted."""

        def handler(request):
            return httpx.Response(204)

        asyncio.run(persistence(handler).reorder("sections/reorder", []))

    def test_rejection(self):
        """Test that a failed reorder raises."""

        def handler(request):
            return httpx.Response(200, json={"success": False, "message": "Failed to reorder"})

        with pytest.raises(RemoteRejectionError, match="Failed to reorder"):
            asyncio.run(persistence(handler).reorder("lists/reorder", []))

    def test_drives_synchronizer(self):
        """Test a rejected reorder through the synchronizer rolls the list back."""
        calls = []

        def handler(request):
            calls.append(json.loads(request.content))
            return httpx.Response(422, json={"detail": "Invalid order"})

        async def run():
            backend = persistence(handler, reorder_body_key="section_orders", reorder_id_field="section_id")
            sync = OptimisticOrderSynchronizer(
                OrderedList([{"id": "s1"}, {"id": "s2"}]),
                backend.order_persister("sections/reorder"),
                start=1,
            )
            return sync, await sync.reorder(0, 1)

        sync, outcome = asyncio.run(run())

        assert calls == [
            {"section_orders": [{"section_id": "s2", "sort_order": 1}, {"section_id": "s1", "sort_order": 2}]}
        ]
        assert outcome.success is False
        assert str(outcome.error) == "Invalid order"
        assert [item["id"] for item in sync.list.displayed] == ["s1", "s2"]
