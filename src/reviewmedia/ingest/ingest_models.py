"""Data structures for ingest pipeline."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from ..media.media_models import MediaRecord
    from .ingest_errors import IngestError


class ErrorCode(StrEnum):
    """Error codes surfaced to the HTTP boundary."""

    NO_FILE = "NO_FILE"
    TOO_MANY_FILES = "TOO_MANY_FILES"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    IMAGE_DIMENSIONS_TOO_LARGE = "IMAGE_DIMENSIONS_TOO_LARGE"
    IMAGE_DIMENSIONS_TOO_SMALL = "IMAGE_DIMENSIONS_TOO_SMALL"
    UNSUPPORTED_IMAGE_FORMAT = "UNSUPPORTED_IMAGE_FORMAT"
    VIDEO_TOO_LARGE = "VIDEO_TOO_LARGE"
    VIDEO_DURATION_TOO_LONG = "VIDEO_DURATION_TOO_LONG"
    UNSUPPORTED_VIDEO_FORMAT = "UNSUPPORTED_VIDEO_FORMAT"
    VIDEO_PROCESSING_ERROR = "VIDEO_PROCESSING_ERROR"
    STORAGE_UPLOAD_FAILED = "STORAGE_UPLOAD_FAILED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(slots=True)
class UploadRequest:
    """One uploaded file as handed over by the HTTP layer (never persisted)."""

    field_name: str
    data: bytes
    content_type: str
    filename: str
    declared_size: int
    uploaded_by: str | None = None


@dataclass(slots=True)
class PendingUpload:
    """An upload whose bytes are read only when its batch slot opens.

    Keeps at most ``batch_concurrency`` raw buffers in memory; the rest stay
    in the framework's spooled upload files until their turn.
    """

    filename: str
    load: Callable[[], Awaitable[UploadRequest]]


@dataclass(slots=True)
class BatchItemResult:
    """Per-file outcome of :meth:`IngestService.ingest_batch`."""

    index: int
    filename: str
    record: "MediaRecord | None" = None
    error: "IngestError | None" = None

    @property
    def ok(self) -> bool:
        return self.record is not None
