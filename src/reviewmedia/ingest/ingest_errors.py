"""Domain-specific exceptions for ingest pipeline."""

from __future__ import annotations

from typing import Any

from .ingest_models import ErrorCode


class IngestError(Exception):
    """Base class for ingest-related errors.

    Every subclass pins a boundary error code and the HTTP status the host
    should answer with.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    http_status: int = 500

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message or self.code.value)
        self.message = message or self.code.value
        self.details: dict[str, Any] = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "statusCode": self.http_status,
            "details": self.details,
        }


class NoFileError(IngestError):
    """Raised when a request carries no file at all."""

    code = ErrorCode.NO_FILE
    http_status = 400


class TooManyFilesError(IngestError):
    """Raised when a batch exceeds the configured file count."""

    code = ErrorCode.TOO_MANY_FILES
    http_status = 400


class InvalidFileTypeError(IngestError):
    """Raised when Content-Type is not allowed."""

    code = ErrorCode.INVALID_FILE_TYPE
    http_status = 400


class FileTooLargeError(IngestError):
    """Raised when uploaded file exceeds the absolute ceiling."""

    code = ErrorCode.FILE_TOO_LARGE
    http_status = 413


class MediaProcessingError(IngestError):
    """Base class for failures while deriving variants."""


class ImageTooLargeError(MediaProcessingError):
    code = ErrorCode.IMAGE_TOO_LARGE
    http_status = 413


class ImageDimensionsTooLargeError(MediaProcessingError):
    code = ErrorCode.IMAGE_DIMENSIONS_TOO_LARGE
    http_status = 400


class ImageDimensionsTooSmallError(MediaProcessingError):
    code = ErrorCode.IMAGE_DIMENSIONS_TOO_SMALL
    http_status = 400


class UnsupportedImageFormatError(MediaProcessingError):
    code = ErrorCode.UNSUPPORTED_IMAGE_FORMAT
    http_status = 400


class VideoTooLargeError(MediaProcessingError):
    code = ErrorCode.VIDEO_TOO_LARGE
    http_status = 413


class VideoDurationTooLongError(MediaProcessingError):
    code = ErrorCode.VIDEO_DURATION_TOO_LONG
    http_status = 400


class UnsupportedVideoFormatError(MediaProcessingError):
    code = ErrorCode.UNSUPPORTED_VIDEO_FORMAT
    http_status = 400


class VideoProcessingError(MediaProcessingError):
    """Raised when ffmpeg could not produce any quality tier."""

    code = ErrorCode.VIDEO_PROCESSING_ERROR
    http_status = 500


class StorageUploadError(IngestError):
    """Raised when an object storage transfer does not complete."""

    code = ErrorCode.STORAGE_UPLOAD_FAILED
    http_status = 500


class MediaNotFoundError(IngestError):
    code = ErrorCode.NOT_FOUND
    http_status = 404
