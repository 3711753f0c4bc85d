"""Persistence calls for gallery metadata and list order.

These are the two remote operations the core drives: upserting a parent
record's gallery metadata and persisting a new order for a list. Both are
safe to retry, but nothing here retries; failures are raised to the caller.
"""

import logging
from abc import ABC, abstractmethod
from functools import partial

import httpx
from pydantic import AliasChoices, BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .config import get_settings
from .errors import ReconciliationError, RemoteRejectionError, TransportError
from .models import GalleryMetadataItem, MediaAsset, OrderAssignment
from .ordering import PersistOrder
from .reconciler import PrimaryPolicy, normalize_order
from .wire import DecodeFailure, error_message_from, parse_envelope

logger = logging.getLogger(__name__)


class AssetResponse(BaseModel):
    """One stored image as returned by the gallery endpoints."""

    id: str | int
    url: str = Field(validation_alias=AliasChoices("image_url", "url"))
    alt_text: str = ""
    is_primary: bool = False
    display_order: int = Field(default=0, ge=0)

    def to_asset(self) -> MediaAsset:
        return MediaAsset(
            id=str(self.id),
            url=self.url,
            alt_text=self.alt_text,
            is_primary=self.is_primary,
            display_order=self.display_order,
        )


class GalleryImagesPayload(BaseModel):
    """Upsert response data that wraps the stored images in an object."""

    images: list[AssetResponse] = Field(
        validation_alias=AliasChoices("images", "governate_images", "wilayah_images")
    )


class GalleryPersistence(ABC):
    """Remote side of gallery saves and list reorders."""

    @abstractmethod
    async def upsert_gallery(
        self, parent_path: str, items: list[GalleryMetadataItem]
    ) -> list[MediaAsset] | None:
        """
        Store the full gallery of a parent record.

        Args:
            parent_path: Resource path of the gallery, e.g. "governates/{id}/images"
            items: Canonical (normalized) gallery entries

        Returns:
            The stored assets with server ids, or None if the server did not
            return them
        """
        pass

    @abstractmethod
    async def reorder(self, endpoint: str, assignments: list[OrderAssignment]) -> None:
        """
        Persist a new order for a list.

        Args:
            endpoint: Resource path of the reorder endpoint, e.g. "lists/reorder"
            assignments: One entry per item, in display order
        """
        pass

    def order_persister(self, endpoint: str) -> PersistOrder:
        """Bind an endpoint, for use as an OptimisticOrderSynchronizer persist callback."""
        return partial(self.reorder, endpoint)


class HttpGalleryPersistence(GalleryPersistence):
    """Gallery persistence over the REST API."""

    def __init__(
        self,
        api_base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        reorder_body_key: str = "item_orders",
        reorder_id_field: str = "item_id",
        reorder_order_field: str = "sort_order",
    ):
        """
        Initialize the REST persistence client.

        Args:
            api_base_url: API root, e.g. http://localhost:9000/api/v1
            token: Optional bearer token
            timeout: Request timeout in seconds
            client: Pre-built client (tests inject one with a MockTransport)
            reorder_body_key: Top-level key of the reorder body ("list_orders", "section_orders", ...)
            reorder_id_field: Id key of each reorder entry ("list_id", "section_id", ...)
            reorder_order_field: Order key of each reorder entry
        """
        settings = get_settings()
        self.api_base_url = (api_base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.timeout = timeout or settings.UPLOAD_TIMEOUT_SECONDS
        self.reorder_body_key = reorder_body_key
        self.reorder_id_field = reorder_id_field
        self.reorder_order_field = reorder_order_field

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(self, method: str, path: str, body: dict) -> object:
        url = f"{self.api_base_url}/{path.lstrip('/')}"
        try:
            response = await self._client.request(method, url, json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            fallback = f"API Error: {response.status_code} {response.reason_phrase}"
            raise RemoteRejectionError(
                error_message_from(payload, fallback), status_code=response.status_code
            )
        return payload

    async def upsert_gallery(
        self, parent_path: str, items: list[GalleryMetadataItem]
    ) -> list[MediaAsset] | None:
        body = {
            "images": [
                {
                    "image_url": item.url,
                    "alt_text": item.alt_text,
                    "is_primary": item.is_primary,
                    "display_order": item.display_order,
                }
                for item in items
            ]
        }
        payload = await self._request("POST", parent_path, body)

        decoded = parse_envelope(payload, list[AssetResponse] | GalleryImagesPayload | None)
        if isinstance(decoded, DecodeFailure):
            if isinstance(payload, dict) and payload.get("success") is False:
                raise RemoteRejectionError(decoded.reason)
            logger.warning("Gallery saved but response was not understood: %s", decoded.reason)
            return None
        if decoded.value is None:
            return None
        stored = decoded.value
        if isinstance(stored, GalleryImagesPayload):
            stored = stored.images
        try:
            assets = [asset.to_asset() for asset in stored]
            normalize_order(assets, PrimaryPolicy.NONE)
        except (ReconciliationError, PydanticValidationError) as e:
            logger.warning("Gallery saved but stored images are inconsistent: %s", e)
            return None
        return assets

    async def reorder(self, endpoint: str, assignments: list[OrderAssignment]) -> None:
        body = {
            self.reorder_body_key: [
                {
                    self.reorder_id_field: a.item_id,
                    self.reorder_order_field: a.new_order,
                }
                for a in assignments
            ]
        }
        payload = await self._request("PUT", endpoint, body)

        if payload is not None:
            decoded = parse_envelope(payload, None)
            if isinstance(decoded, DecodeFailure):
                raise RemoteRejectionError(decoded.reason)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
