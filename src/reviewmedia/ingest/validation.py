"""Upload validation utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import UploadFile

from ..config import IngestLimits
from .ingest_errors import FileTooLargeError, InvalidFileTypeError, NoFileError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UploadValidator:
    """Validate declared upload metadata against configured limits."""

    limits: IngestLimits

    def validate(self, content_type: str | None, declared_size: int) -> None:
        """Reject disallowed types and oversized uploads before any decoding."""
        if content_type not in set(self.limits.allowed_content_types):
            logger.warning(
                "ingest.upload.invalid_file_type",
                extra={"content_type": content_type},
            )
            raise InvalidFileTypeError(
                f"Invalid file type: {content_type}",
                details={"content_type": content_type},
            )

        if declared_size > self.limits.absolute_cap_bytes:
            logger.warning(
                "ingest.upload.file_too_large",
                extra={
                    "size_bytes": declared_size,
                    "limit_bytes": self.limits.absolute_cap_bytes,
                },
            )
            raise FileTooLargeError(
                "File too large. Maximum size allowed is "
                f"{self.limits.absolute_cap_bytes // (1024 * 1024)}MB",
                details={
                    "size_bytes": declared_size,
                    "limit_bytes": self.limits.absolute_cap_bytes,
                },
            )

    async def read_upload(self, upload: UploadFile) -> bytes:
        """Read an upload in chunks, aborting as soon as the cap is exceeded."""
        self.validate(upload.content_type, upload.size or 0)

        cap = self.limits.absolute_cap_bytes
        chunks: list[bytes] = []
        size = 0
        while True:
            chunk = await upload.read(self.limits.chunk_size_bytes)
            if not chunk:
                break
            size += len(chunk)
            if size > cap:
                logger.warning(
                    "ingest.upload.payload_too_large",
                    extra={"upload_name": upload.filename, "size_bytes": size, "limit_bytes": cap},
                )
                raise FileTooLargeError(
                    f"File too large. Maximum size allowed is {cap // (1024 * 1024)}MB",
                    details={"limit_bytes": cap},
                )
            chunks.append(chunk)

        data = b"".join(chunks)
        if not data and not upload.filename:
            raise NoFileError("No file(s) uploaded")
        logger.info(
            "ingest.upload.read",
            extra={
                "upload_name": upload.filename,
                "size_bytes": size,
                "content_type": upload.content_type,
            },
        )
        return data
