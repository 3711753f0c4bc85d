"""Concurrent batch uploads with per-item failure isolation.

Uploads run concurrently, bounded by a semaphore. A failing item never
fails the batch: every submitted item ends up exactly once in either
``successful`` or ``failed``. Only programmer errors (an invalid container,
duplicate pending ids) raise.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from .config import Settings, get_settings
from .errors import GallerySyncError, ValidationError
from .logging_config import log_event
from .models import (
    FailedItem,
    PendingUpload,
    SourceFile,
    UploadBatchResult,
    UploadedItem,
    UploadResult,
    UploadStatus,
)
from .registry import UploadPolicy
from .transports.base import UploadTransport, validate_container

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CompleteCallback = Callable[[str, UploadResult], None]


class BatchUploadOrchestrator:
    """Runs uploads through one transport.

    Construct one per editing session and pass it where it is needed; it holds
    no state between batches.
    """

    def __init__(
        self,
        transport: UploadTransport,
        policy: UploadPolicy | None = None,
        max_concurrency: int = 4,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.transport = transport
        self.policy = policy or UploadPolicy()
        self.max_concurrency = max_concurrency

    @classmethod
    def from_settings(
        cls, transport: UploadTransport, settings: Settings | None = None
    ) -> "BatchUploadOrchestrator":
        settings = settings or get_settings()
        return cls(
            transport,
            policy=UploadPolicy.from_settings(settings),
            max_concurrency=settings.UPLOAD_MAX_CONCURRENCY,
        )

    async def upload_single(self, file: SourceFile, target_container: str) -> UploadResult:
        """Upload one file. Failures are returned, not raised."""
        container = validate_container(target_container)
        return await self._upload(file, container)

    async def _upload(self, file: SourceFile, container: str) -> UploadResult:
        start = time.perf_counter()

        try:
            self.policy.check(file)
        except ValidationError as e:
            result = UploadResult.failure(e, e.kind, filename=file.filename)
            self._log_result(file, container, result, 0.0)
            return result

        try:
            receipt = await self.transport.upload(file, container)
        except GallerySyncError as e:
            result = UploadResult.failure(e, e.kind, filename=file.filename)
        except Exception as e:
            # A misbehaving transport still only fails its own item
            logger.exception("Transport raised unexpectedly for %s", file.filename)
            result = UploadResult.failure(e, "transport", filename=file.filename)
        else:
            result = UploadResult(
                success=True,
                url=receipt.public_url,
                filename=receipt.filename or file.filename,
                size_bytes=receipt.size_bytes,
                asset_id=receipt.asset_id,
            )

        result.duration_ms = (time.perf_counter() - start) * 1000
        self._log_result(file, container, result, result.duration_ms)
        return result

    def _log_result(
        self, file: SourceFile, container: str, result: UploadResult, duration_ms: float
    ) -> None:
        if not result.success:
            logger.warning("Upload of %s failed (%s): %s", file.filename, result.error_kind, result.error)
        log_event(
            "upload",
            "upload_single",
            "success" if result.success else "failure",
            duration_ms=duration_ms,
            upload={
                "filename": file.filename,
                "container": container,
                "size_bytes": file.size,
                "error_kind": result.error_kind,
            },
        )

    async def upload_batch(
        self,
        files: list[SourceFile],
        target_container: str,
        on_progress: ProgressCallback | None = None,
    ) -> UploadBatchResult:
        """Upload files concurrently.

        ``on_progress(completed, total)`` fires as each item finishes.
        Raises InvalidContainerError for an invalid container; never raises
        for individual upload failures.
        """
        container = validate_container(target_container)
        start = time.perf_counter()
        batch = UploadBatchResult()
        total = len(files)
        completed = 0
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(index: int, file: SourceFile) -> None:
            nonlocal completed
            async with semaphore:
                result = await self._upload(file, container)

            if result.success:
                batch.successful.append(UploadedItem(index=index, result=result))
            else:
                batch.failed.append(
                    FailedItem(
                        index=index,
                        error=result.error or "Upload failed",
                        kind=result.error_kind or "transport",
                        filename=file.filename,
                    )
                )
            completed += 1
            self._notify(on_progress, completed, total)

        logger.info("Starting batch upload of %d files to %s", total, container)
        await asyncio.gather(*(run(i, f) for i, f in enumerate(files)))

        batch.total_time_ms = (time.perf_counter() - start) * 1000
        self._log_batch("upload_batch", container, batch)
        return batch

    async def process_pending_uploads(
        self,
        pending_uploads: list[PendingUpload],
        on_progress: ProgressCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> UploadBatchResult:
        """Upload pending handles concurrently, updating them in place.

        ``on_complete(pending_id, result)`` fires once per submitted id, in
        completion order. Correlate by id, never by arrival position.
        Disposed handles are not mutated; their results are still reported.
        """
        ids = [p.id for p in pending_uploads]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate pending upload ids in batch")

        # Fail fast on programmer error before any upload starts
        containers = [validate_container(p.target_container) for p in pending_uploads]

        start = time.perf_counter()
        batch = UploadBatchResult()
        total = len(pending_uploads)
        completed = 0
        semaphore = asyncio.Semaphore(self.max_concurrency)

        for pending in pending_uploads:
            if not pending.disposed:
                pending.status = UploadStatus.QUEUED
                pending.progress = 0
                pending.error = None

        async def run(index: int, pending: PendingUpload, container: str) -> None:
            nonlocal completed
            async with semaphore:
                if not pending.disposed:
                    pending.status = UploadStatus.UPLOADING
                result = await self._upload(pending.source, container)

            if result.success:
                batch.successful.append(
                    UploadedItem(index=index, result=result, pending_id=pending.id)
                )
            else:
                batch.failed.append(
                    FailedItem(
                        index=index,
                        error=result.error or "Upload failed",
                        kind=result.error_kind or "transport",
                        pending_id=pending.id,
                        filename=pending.filename,
                    )
                )

            if not pending.disposed:
                pending.status = UploadStatus.SUCCEEDED if result.success else UploadStatus.FAILED
                pending.progress = 100
                pending.error = result.error
                pending.url = result.url

            completed += 1
            self._notify(on_complete, pending.id, result)
            self._notify(on_progress, completed, total)

        await asyncio.gather(
            *(run(i, p, c) for i, (p, c) in enumerate(zip(pending_uploads, containers)))
        )

        batch.total_time_ms = (time.perf_counter() - start) * 1000
        self._log_batch("process_pending_uploads", None, batch)
        return batch

    @staticmethod
    def _notify(callback: Callable | None, *args) -> None:
        """Invoke a caller callback; a failing callback must not break the batch."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Upload callback %r raised", callback)

    def _log_batch(self, action: str, container: str | None, batch: UploadBatchResult) -> None:
        logger.info(
            "Batch upload completed in %.0fms. Success: %d, Failed: %d",
            batch.total_time_ms,
            batch.successful_count,
            batch.failed_count,
        )
        log_event(
            "upload",
            action,
            "failure" if batch.has_failures else "success",
            duration_ms=batch.total_time_ms,
            upload={
                "container": container,
                "total": batch.total,
                "successful": batch.successful_count,
                "failed": batch.failed_count,
            },
        )
