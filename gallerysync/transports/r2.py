"""Cloudflare R2 upload transport, via R2's S3-compatible API."""

from gallerysync.config import Settings, get_settings
from gallerysync.transports.s3 import S3UploadTransport


class R2UploadTransport(S3UploadTransport):
    """Uploads to an R2 bucket.

    R2 buckets have no default public URL, so a public domain is required.
    """

    def __init__(
        self,
        bucket: str | None,
        account_id: str | None,
        public_domain: str | None,
        access_key: str | None = None,
        secret_key: str | None = None,
    ):
        missing = [
            name
            for name, value in (
                ("STORAGE_R2_BUCKET", bucket),
                ("STORAGE_R2_ACCOUNT_ID", account_id),
                ("STORAGE_R2_PUBLIC_DOMAIN", public_domain),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"R2 transport is missing settings: {', '.join(missing)}")

        if not public_domain.startswith(("http://", "https://")):
            public_domain = f"https://{public_domain}"

        self.account_id = account_id
        super().__init__(
            bucket=bucket,
            region="auto",
            access_key=access_key,
            secret_key=secret_key,
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            public_url=public_domain,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "R2UploadTransport":
        settings = settings or get_settings()
        return cls(
            bucket=settings.STORAGE_R2_BUCKET,
            account_id=settings.STORAGE_R2_ACCOUNT_ID,
            public_domain=settings.STORAGE_R2_PUBLIC_DOMAIN,
            access_key=settings.STORAGE_R2_ACCESS_KEY,
            secret_key=settings.STORAGE_R2_SECRET_KEY,
        )
