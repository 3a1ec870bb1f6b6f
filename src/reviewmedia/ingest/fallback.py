"""Graceful degradation around variant processing.

The controller runs the processing step for one classified upload and turns
its result into a typed outcome. Any exception from a generator or from a
derived-variant transfer moves the upload to ``DEGRADED``: partial variants
are dropped and only the untouched original is kept. When the original was
already confirmed during the failed attempt that object is reused, otherwise
the buffer is stored under the fallback prefix. A failure of that last
transfer is the only error that reaches the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Mapping

from ..infrastructure.object_storage import ObjectStorage
from ..media.media_models import MediaLane, Variant, VariantRole, VideoMetadata
from .classifier import FALLBACK_FOLDER, LANE_FOLDERS, original_extension
from .ingest_errors import StorageUploadError
from .ingest_models import UploadRequest

logger = logging.getLogger(__name__)


class ProcessingState(StrEnum):
    PROCESSING = "processing"
    SUCCESS = "success"
    DEGRADED = "degraded"


@dataclass(slots=True)
class Success:
    """Every expected variant was produced and its transfer confirmed."""

    original: Variant
    variants: dict[VariantRole, Variant]
    compression_ratio: float | None = None
    processing_time_ms: int = 0
    width: int | None = None
    height: int | None = None
    video_metadata: VideoMetadata | None = None
    state: ProcessingState = field(default=ProcessingState.SUCCESS, init=False)


@dataclass(slots=True)
class Degraded:
    """Only the original buffer was stored; ``error`` says why."""

    original: Variant
    error: str
    processing_time_ms: int = 0
    state: ProcessingState = field(default=ProcessingState.DEGRADED, init=False)

    @property
    def variants(self) -> dict[VariantRole, Variant]:
        return {VariantRole.ORIGINAL: self.original}


ProcessingOutcome = Success | Degraded


@dataclass(slots=True)
class ProcessingAttempt:
    """State shared between the controller and one processing step."""

    original: Variant | None = None


async def transfer_variant(
    storage: ObjectStorage,
    *,
    role: VariantRole,
    data: bytes,
    key: str,
    mime_type: str,
    timeout_seconds: float,
    width: int | None = None,
    height: int | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Variant:
    """Run one blocking storage transfer off the event loop under a deadline.

    A deadline overrun is reported as :class:`StorageUploadError`. The worker
    thread itself keeps running until boto3 returns.
    """
    try:
        location = await asyncio.wait_for(
            asyncio.to_thread(storage.transfer, data, key, mime_type, metadata),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        logger.warning(
            "storage.upload.timeout",
            extra={"key": key, "role": role.value, "timeout_seconds": timeout_seconds},
        )
        raise StorageUploadError(
            f"Upload of {role.value} variant timed out after {timeout_seconds:g}s",
            details={"key": key},
        ) from exc
    return Variant(
        role=role,
        location=location,
        mime_type=mime_type,
        size=len(data),
        width=width,
        height=height,
    )


@dataclass(slots=True)
class FallbackController:
    """Drive ``PROCESSING -> {SUCCESS, DEGRADED}`` for one upload."""

    storage: ObjectStorage
    transfer_timeout_seconds: float
    log: logging.Logger = field(default_factory=lambda: logger)

    async def run(
        self,
        request: UploadRequest,
        lane: MediaLane,
        process: Callable[[ProcessingAttempt], Awaitable[Success]],
    ) -> ProcessingOutcome:
        started = time.perf_counter()
        attempt = ProcessingAttempt()
        self.log.info(
            "ingest.processing.started",
            extra={
                "state": ProcessingState.PROCESSING.value,
                "lane": lane.value,
                "upload_name": request.filename,
                "size_bytes": len(request.data),
            },
        )
        try:
            outcome = await process(attempt)
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            self.log.warning(
                "ingest.processing.degraded",
                extra={
                    "state": ProcessingState.DEGRADED.value,
                    "lane": lane.value,
                    "upload_name": request.filename,
                    "error": error,
                    "original_confirmed": attempt.original is not None,
                },
                exc_info=True,
            )
            original = attempt.original
            if original is None:
                original = await self.store_original(
                    request, folder=f"{FALLBACK_FOLDER}/{LANE_FOLDERS[lane]}"
                )
            return Degraded(
                original=original,
                error=error,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
            )

        self.log.info(
            "ingest.processing.succeeded",
            extra={
                "state": outcome.state.value,
                "lane": lane.value,
                "variants": sorted(role.value for role in outcome.variants),
            },
        )
        return outcome

    async def store_original(self, request: UploadRequest, *, folder: str) -> Variant:
        """Store the untouched upload; a failure here is terminal."""
        key = self.storage.build_key(
            folder,
            request.field_name,
            original_extension(request.filename, request.content_type),
        )
        return await transfer_variant(
            self.storage,
            role=VariantRole.ORIGINAL,
            data=request.data,
            key=key,
            mime_type=request.content_type,
            timeout_seconds=self.transfer_timeout_seconds,
            metadata={"original-name": _ascii(request.filename), "role": VariantRole.ORIGINAL.value},
        )


def _ascii(value: str) -> str:
    # S3 user metadata only round-trips ASCII
    return value.encode("ascii", "replace").decode("ascii")
