"""Upload transport for the REST upload endpoint."""

import logging

import httpx

from gallerysync.config import get_settings
from gallerysync.errors import RemoteRejectionError, TransportError
from gallerysync.models import SourceFile
from gallerysync.transports.base import TransportReceipt, UploadTransport
from gallerysync.wire import DecodeFailure, error_message_from, parse_upload_response

logger = logging.getLogger(__name__)


class HttpUploadTransport(UploadTransport):
    """POSTs multipart ``file`` + ``folder`` to ``{api_base_url}/upload``."""

    def __init__(
        self,
        api_base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the HTTP transport.

        Args:
            api_base_url: API root, e.g. http://localhost:9000/api/v1
            token: Optional bearer token
            timeout: Request timeout in seconds
            client: Pre-built client (tests inject one with a MockTransport)
        """
        settings = get_settings()
        self.api_base_url = (api_base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.timeout = timeout or settings.UPLOAD_TIMEOUT_SECONDS

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def upload(self, source: SourceFile, target_container: str) -> TransportReceipt:
        """Upload one file to the REST endpoint."""
        try:
            response = await self._client.post(
                f"{self.api_base_url}/upload",
                headers=self._headers(),
                files={"file": (source.filename, source.data, source.content_type)},
                data={"folder": target_container},
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Upload timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            fallback = f"HTTP {response.status_code}: {response.reason_phrase}"
            raise RemoteRejectionError(
                error_message_from(payload, fallback), status_code=response.status_code
            )

        decoded = parse_upload_response(payload)
        if isinstance(decoded, DecodeFailure):
            raise RemoteRejectionError(decoded.reason, status_code=response.status_code)

        data = decoded.value
        storage_path = None
        if data.filename:
            storage_path = f"{data.folder or target_container}/{data.filename}"

        logger.debug("Uploaded %s to %s", source.filename, data.url)
        return TransportReceipt(
            public_url=data.url,
            storage_path=storage_path,
            size_bytes=data.size if data.size is not None else source.size,
            filename=data.filename,
            asset_id=str(data.id) if data.id is not None else None,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
