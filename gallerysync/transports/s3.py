"""Direct-to-S3 upload transport.

Each upload becomes one object keyed like the local transport's files, and
the object's public URL is what the gallery stores.
"""

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from gallerysync.config import Settings, get_settings
from gallerysync.errors import RemoteRejectionError, TransportError
from gallerysync.models import SourceFile
from gallerysync.transports.base import TransportReceipt, UploadTransport, storage_path_for


class S3UploadTransport(UploadTransport):
    """Puts uploads into an S3 (or S3-compatible) bucket."""

    def __init__(
        self,
        bucket: str | None,
        region: str = "us-east-1",
        access_key: str | None = None,
        secret_key: str | None = None,
        endpoint_url: str | None = None,
        public_url: str | None = None,
    ):
        """
        Args:
            bucket: Target bucket
            region: Bucket region, "auto" for R2
            access_key: Access key id; None defers to the default credential chain
            secret_key: Secret access key
            endpoint_url: Endpoint of an S3-compatible service such as MinIO
            public_url: CDN or custom domain that serves the bucket
        """
        if not bucket:
            raise ValueError("STORAGE_S3_BUCKET must be set for the s3 transport")

        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_url = public_url.rstrip("/") if public_url else None

        self._session = aioboto3.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "S3UploadTransport":
        settings = settings or get_settings()
        return cls(
            bucket=settings.STORAGE_S3_BUCKET,
            region=settings.STORAGE_S3_REGION,
            access_key=settings.STORAGE_S3_ACCESS_KEY,
            secret_key=settings.STORAGE_S3_SECRET_KEY,
            endpoint_url=settings.STORAGE_S3_ENDPOINT_URL,
            public_url=settings.STORAGE_S3_PUBLIC_URL,
        )

    async def upload(self, source: SourceFile, target_container: str) -> TransportReceipt:
        key = storage_path_for(target_container, source.filename)
        client_options = {"endpoint_url": self.endpoint_url} if self.endpoint_url else {}

        try:
            async with self._session.client("s3", **client_options) as s3:
                await s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=source.data,
                    ContentType=source.content_type,
                )
        except ClientError as e:
            error = e.response.get("Error", {})
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            raise RemoteRejectionError(
                error.get("Message") or error.get("Code") or "S3 rejected the upload",
                status_code=status,
            ) from e
        except BotoCoreError as e:
            raise TransportError(f"S3 transport error: {e}") from e

        return TransportReceipt(
            public_url=self.object_url(key),
            storage_path=key,
            size_bytes=source.size,
            filename=key.rsplit("/", 1)[-1],
        )

    def object_url(self, key: str) -> str:
        """Public URL of a stored object."""
        if self.public_url:
            return f"{self.public_url}/{key}"
        if self.endpoint_url:
            # Path-style addressing for S3-compatible services
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
