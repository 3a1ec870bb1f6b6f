"""Domain service for ingest operations."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..config import ConcurrencyLimits
from ..exceptions import RepositoryError
from ..infrastructure.object_storage import ObjectStorage
from ..media.image_variants import ImageVariantGenerator
from ..media.media_models import (
    GeneratedVariant,
    MediaLane,
    MediaRecord,
    ProcessingMetadata,
    Variant,
    VariantRole,
)
from ..media.media_selection import image_primary_role, video_primary_role
from ..media.video_variants import VideoVariantGenerator
from ..repositories.media_record_repository import MediaRecordRepository, MediaStats
from .classifier import LANE_FOLDERS, classify, is_image, is_video, original_extension
from .fallback import (
    Degraded,
    FallbackController,
    ProcessingAttempt,
    ProcessingOutcome,
    Success,
    transfer_variant,
)
from .ingest_errors import IngestError, MediaNotFoundError, NoFileError, TooManyFilesError
from .ingest_models import BatchItemResult, PendingUpload, UploadRequest
from .validation import UploadValidator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestService:
    """Coordinates ingest workflow."""

    validator: UploadValidator
    image_generator: ImageVariantGenerator
    video_generator: VideoVariantGenerator
    storage: ObjectStorage
    media_repo: MediaRecordRepository
    concurrency: ConcurrencyLimits = field(default_factory=ConcurrencyLimits)
    log: logging.Logger = field(default_factory=lambda: logger)
    fallback: FallbackController = field(init=False)

    def __post_init__(self) -> None:
        self.fallback = FallbackController(
            storage=self.storage,
            transfer_timeout_seconds=self.concurrency.transfer_timeout_seconds,
            log=self.log,
        )

    @property
    def max_batch_files(self) -> int:
        return self.validator.limits.max_batch_files

    async def ingest(self, request: UploadRequest) -> MediaRecord:
        """Single-file ingest is a one-element batch."""
        [item] = await self.ingest_batch([request])
        if item.error is not None:
            raise item.error
        if item.record is None:
            raise IngestError("Upload produced no media record")
        return item.record

    async def ingest_batch(
        self, requests: Sequence[UploadRequest | PendingUpload]
    ) -> list[BatchItemResult]:
        """Ingest every file independently; per-file errors are returned, not raised.

        A :class:`PendingUpload` is read only once its batch slot is acquired.
        """
        if not requests:
            raise NoFileError("No file(s) uploaded")
        if len(requests) > self.max_batch_files:
            raise TooManyFilesError(
                f"Too many files. Maximum {self.max_batch_files} files allowed",
                details={"count": len(requests), "limit": self.max_batch_files},
            )

        semaphore = asyncio.Semaphore(self.concurrency.batch_concurrency)

        async def run(index: int, item: UploadRequest | PendingUpload) -> BatchItemResult:
            async with semaphore:
                try:
                    request = item if isinstance(item, UploadRequest) else await item.load()
                    record = await self._ingest_one(request)
                except RepositoryError as exc:
                    self.log.error(
                        "ingest.record.persist_failed",
                        extra={"index": index, "upload_name": item.filename, "error": str(exc)},
                        exc_info=True,
                    )
                    error = IngestError(
                        "Failed to save media record", details={"filename": item.filename}
                    )
                    return BatchItemResult(index=index, filename=item.filename, error=error)
                except IngestError as exc:
                    self.log.warning(
                        "ingest.file.rejected",
                        extra={
                            "index": index,
                            "upload_name": item.filename,
                            "code": exc.code.value,
                            "error": exc.message,
                        },
                    )
                    return BatchItemResult(index=index, filename=item.filename, error=exc)
                return BatchItemResult(index=index, filename=item.filename, record=record)

        results = await asyncio.gather(
            *(run(index, request) for index, request in enumerate(requests))
        )
        self.log.info(
            "ingest.batch.completed",
            extra={
                "total": len(results),
                "uploaded": sum(1 for item in results if item.ok),
                "failed": sum(1 for item in results if not item.ok),
            },
        )
        return list(results)

    def get(self, record_id: str) -> MediaRecord:
        record = self.media_repo.get(record_id)
        if record is None:
            raise MediaNotFoundError("File not found", details={"id": record_id})
        return record

    def list_records(
        self,
        *,
        uploaded_by: str | None = None,
        page: int = 1,
        limit: int = 20,
        lane: MediaLane | None = None,
    ) -> tuple[list[MediaRecord], int]:
        return self.media_repo.list_records(
            uploaded_by=uploaded_by, page=page, limit=limit, lane=lane
        )

    def stats(self, *, uploaded_by: str | None = None) -> MediaStats:
        return self.media_repo.stats(uploaded_by=uploaded_by)

    def delete(self, record_id: str) -> None:
        """Hard delete the record; stored objects are left in the bucket."""
        if not self.media_repo.delete(record_id):
            raise MediaNotFoundError("File not found", details={"id": record_id})
        self.log.info("ingest.record.deleted", extra={"id": record_id})

    async def _ingest_one(self, request: UploadRequest) -> MediaRecord:
        self.validator.validate(
            request.content_type, max(request.declared_size, len(request.data))
        )
        lane = classify(request.content_type)
        started = time.perf_counter()

        outcome: ProcessingOutcome
        if lane is MediaLane.PASSTHROUGH:
            original = await self.fallback.store_original(request, folder=LANE_FOLDERS[lane])
            outcome = Success(
                original=original,
                variants={VariantRole.ORIGINAL: original},
                processing_time_ms=int((time.perf_counter() - started) * 1000),
            )
        else:
            outcome = await self.fallback.run(
                request, lane, lambda attempt: self._process(request, lane, started, attempt)
            )

        record = self._build_record(request, lane, outcome)
        self.media_repo.create(record)
        self.log.info(
            "ingest.record.created",
            extra={
                "id": record.id,
                "lane": lane.value,
                "state": outcome.state.value,
                "key": record.key,
                "variants": sorted(role.value for role in record.variants),
            },
        )
        return record

    async def _process(
        self,
        request: UploadRequest,
        lane: MediaLane,
        started: float,
        attempt: ProcessingAttempt,
    ) -> Success:
        if lane is MediaLane.IMAGE:
            image_set = await asyncio.to_thread(
                self.image_generator.generate, request.data, request.content_type
            )
            generated = image_set.variants()
            stored = await self._transfer_all(request, lane, generated, attempt)
            return Success(
                original=stored[VariantRole.ORIGINAL],
                variants=stored,
                compression_ratio=image_set.compression_ratio,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
                width=image_set.original_width,
                height=image_set.original_height,
            )

        video_set = await asyncio.to_thread(self.video_generator.generate, request.data)
        stored = await self._transfer_all(request, lane, video_set.variants(), attempt)
        return Success(
            original=stored[VariantRole.ORIGINAL],
            variants=stored,
            compression_ratio=video_set.compression_ratio,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            width=video_set.metadata.width,
            height=video_set.metadata.height,
            video_metadata=video_set.metadata,
        )

    async def _transfer_all(
        self,
        request: UploadRequest,
        lane: MediaLane,
        generated: Sequence[GeneratedVariant],
        attempt: ProcessingAttempt,
    ) -> dict[VariantRole, Variant]:
        """Store the original plus every derived variant; all transfers settle first.

        A confirmed original is handed to ``attempt`` straight away so a later
        degradation can keep it instead of uploading the buffer again.
        """
        folder = LANE_FOLDERS[lane]
        semaphore = asyncio.Semaphore(self.concurrency.variant_transfer_concurrency)
        timeout = self.concurrency.transfer_timeout_seconds

        async def send(
            role: VariantRole,
            data: bytes,
            mime_type: str,
            extension: str,
            width: int | None,
            height: int | None,
            metadata: dict[str, str],
        ) -> Variant:
            key = self.storage.build_key(f"{folder}/{role.value}", request.field_name, extension)
            async with semaphore:
                stored = await transfer_variant(
                    self.storage,
                    role=role,
                    data=data,
                    key=key,
                    mime_type=mime_type,
                    timeout_seconds=timeout,
                    width=width,
                    height=height,
                    metadata=metadata,
                )
            if role is VariantRole.ORIGINAL:
                attempt.original = stored
            return stored

        jobs = [
            send(
                variant.role,
                variant.data,
                variant.mime_type,
                variant.extension,
                variant.width,
                variant.height,
                {
                    "role": variant.role.value,
                    "original-size": str(len(request.data)),
                    "compression-ratio": ""
                    if variant.compression_ratio is None
                    else f"{variant.compression_ratio:.4f}",
                },
            )
            for variant in generated
        ]
        jobs.append(
            send(
                VariantRole.ORIGINAL,
                request.data,
                request.content_type,
                original_extension(request.filename, request.content_type),
                None,
                None,
                {"role": VariantRole.ORIGINAL.value, "file-size": str(len(request.data))},
            )
        )

        settled = await asyncio.gather(*jobs, return_exceptions=True)
        failures = [item for item in settled if isinstance(item, BaseException)]
        if failures:
            raise failures[0]
        return {variant.role: variant for variant in settled if isinstance(variant, Variant)}

    def _build_record(
        self, request: UploadRequest, lane: MediaLane, outcome: ProcessingOutcome
    ) -> MediaRecord:
        original = outcome.original
        variants = dict(outcome.variants)
        primary = original
        match outcome:
            case Success():
                role = None
                if lane is MediaLane.IMAGE:
                    role = image_primary_role(variants)
                elif lane is MediaLane.VIDEO:
                    role = video_primary_role(variants)
                if role is not None:
                    primary = variants[role]
                processing = ProcessingMetadata(
                    processed_at=datetime.now(timezone.utc),
                    original_size=len(request.data),
                    processing_time_ms=outcome.processing_time_ms,
                    compression_ratio=outcome.compression_ratio,
                )
                width, height = outcome.width, outcome.height
                video_metadata = outcome.video_metadata
            case Degraded():
                processing = ProcessingMetadata(
                    processed_at=datetime.now(timezone.utc),
                    original_size=len(request.data),
                    processing_time_ms=outcome.processing_time_ms,
                    error=outcome.error,
                )
                width = height = None
                video_metadata = None

        return MediaRecord(
            id=uuid.uuid4().hex,
            original_name=request.filename,
            mime_type=request.content_type,
            size=len(request.data),
            lane=lane,
            key=primary.location.key,
            url=primary.location.url,
            bucket=primary.location.bucket,
            etag=original.location.etag,
            version_id=original.location.version_id,
            uploaded_by=request.uploaded_by,
            is_image=is_image(request.content_type),
            is_video=is_video(request.content_type),
            processing=processing,
            variants=variants,
            width=width,
            height=height,
            video_metadata=video_metadata,
        )
