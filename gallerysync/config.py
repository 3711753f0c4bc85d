"""Client configuration with environment-based settings."""

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings

UploadTransportType = Literal["http", "local", "s3", "r2"]
PreviewBackendType = Literal["memory", "local"]


class LogDestination(str, Enum):
    STDOUT = "stdout"
    FILE = "file"
    EXTERNAL = "external"


# Image types accepted by the upload endpoint
DEFAULT_ALLOWED_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
]


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # Remote API
    API_BASE_URL: str = "http://localhost:9000/api/v1"
    API_TOKEN: str | None = None

    # Upload transport
    UPLOAD_TRANSPORT: UploadTransportType = "http"
    UPLOAD_MAX_SIZE_MB: int = 10
    UPLOAD_ALLOWED_TYPES: list[str] = DEFAULT_ALLOWED_TYPES
    UPLOAD_MAX_FILES: int | None = 20  # None means no limit per gallery
    UPLOAD_MAX_CONCURRENCY: int = 4
    UPLOAD_TIMEOUT_SECONDS: float = 30.0
    UPLOAD_DEFAULT_CONTAINER: str = "general"

    # Preview handles
    PREVIEW_BACKEND: PreviewBackendType = "memory"
    PREVIEW_LOCAL_PATH: str = "data/previews"

    # Local storage transport (development)
    STORAGE_LOCAL_PATH: str = "data/media"
    STORAGE_PUBLIC_URL: str = "http://localhost:9000"

    # S3 transport
    STORAGE_S3_BUCKET: str | None = None
    STORAGE_S3_REGION: str = "us-east-1"
    STORAGE_S3_ACCESS_KEY: str | None = None
    STORAGE_S3_SECRET_KEY: str | None = None
    STORAGE_S3_ENDPOINT_URL: str | None = None  # For S3-compatible services (MinIO)
    STORAGE_S3_PUBLIC_URL: str | None = None  # CDN or custom domain

    # Cloudflare R2 transport
    STORAGE_R2_BUCKET: str | None = None
    STORAGE_R2_ACCOUNT_ID: str | None = None
    STORAGE_R2_ACCESS_KEY: str | None = None
    STORAGE_R2_SECRET_KEY: str | None = None
    STORAGE_R2_PUBLIC_DOMAIN: str | None = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DESTINATION: LogDestination = LogDestination.STDOUT
    LOG_FILE_PATH: str = "logs/gallerysync.log"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def max_upload_bytes(self) -> int:
        """Maximum upload size in bytes."""
        return self.UPLOAD_MAX_SIZE_MB * 1024 * 1024

    def validate_transport_config(self) -> list[str]:
        """Validate that the selected transport is configured. Returns list of missing settings."""
        missing = []
        if self.UPLOAD_TRANSPORT == "s3" and not self.STORAGE_S3_BUCKET:
            missing.append("STORAGE_S3_BUCKET")
        if self.UPLOAD_TRANSPORT == "r2":
            if not self.STORAGE_R2_BUCKET:
                missing.append("STORAGE_R2_BUCKET")
            if not self.STORAGE_R2_ACCOUNT_ID:
                missing.append("STORAGE_R2_ACCOUNT_ID")
        return missing


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
