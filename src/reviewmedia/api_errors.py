"""Reusable error primitives for API exception handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .exceptions import RepositoryError
from .ingest.ingest_errors import IngestError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApiError(Exception):
    """Structured application-level error for HTTP handlers."""

    status_code: int
    code: str
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] | None = None

    @classmethod
    def from_ingest_error(cls, exc: IngestError) -> "ApiError":
        return cls(exc.http_status, exc.code.value, exc.message, dict(exc.details))

    def body(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "statusCode": self.status_code,
                "details": dict(self.details),
            },
        }

    def to_response(self) -> JSONResponse:
        """Materialise the error into a ``JSONResponse`` instance."""

        return JSONResponse(
            status_code=self.status_code,
            content=self.body(),
            headers=dict(self.headers or {}),
        )


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Convert :class:`ApiError` exceptions into JSON payloads."""

    return exc.to_response()


async def ingest_error_handler(_: Request, exc: IngestError) -> JSONResponse:
    """Render ingest errors that escaped a router with the same envelope."""

    return ApiError.from_ingest_error(exc).to_response()


async def repository_error_handler(_: Request, exc: RepositoryError) -> JSONResponse:
    """Hide persistence failures behind a generic 500 envelope."""

    logger.error("api.repository_error", extra={"error": str(exc)})
    return ApiError(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Internal server error"
    ).to_response()


__all__ = [
    "ApiError",
    "api_error_handler",
    "ingest_error_handler",
    "repository_error_handler",
]
