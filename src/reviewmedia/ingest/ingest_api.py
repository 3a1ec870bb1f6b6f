"""HTTP routes for file upload and media record operations."""

from __future__ import annotations

import logging
import math

from fastapi import (
    APIRouter,
    Depends,
    File,
    Header,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)

from ..api_errors import ApiError
from ..media.media_models import MediaLane
from .ingest_errors import IngestError, NoFileError
from .ingest_models import PendingUpload, UploadRequest
from .ingest_schemas import (
    BatchUploadResponse,
    MediaListResponse,
    MediaRecordSchema,
    MediaStatsResponse,
    PaginationSchema,
)
from .ingest_service import IngestService

router = APIRouter(prefix="/api/files", tags=["files"])
logger = logging.getLogger(__name__)


def get_ingest_service(request: Request) -> IngestService:
    """Fetch ingest service from application state."""
    try:
        return request.app.state.ingest_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - misconfigured app
        raise RuntimeError("IngestService is not configured") from exc


def _to_request(
    field_name: str, upload: UploadFile, data: bytes, uploaded_by: str | None
) -> UploadRequest:
    return UploadRequest(
        field_name=field_name,
        data=data,
        content_type=upload.content_type or "application/octet-stream",
        filename=upload.filename or "",
        declared_size=upload.size if upload.size is not None else len(data),
        uploaded_by=uploaded_by,
    )


def _pending(upload: UploadFile, service: IngestService, uploaded_by: str | None) -> PendingUpload:
    async def load() -> UploadRequest:
        data = await service.validator.read_upload(upload)
        return _to_request("files", upload, data, uploaded_by)

    return PendingUpload(filename=upload.filename or "", load=load)


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile | None = File(None),
    x_user_id: str | None = Header(None),
    service: IngestService = Depends(get_ingest_service),
) -> MediaRecordSchema:
    """Upload one file and return its media record (possibly degraded)."""
    try:
        if file is None:
            raise NoFileError("No file uploaded")
        data = await service.validator.read_upload(file)
        record = await service.ingest(_to_request("file", file, data, x_user_id))
    except IngestError as exc:
        raise ApiError.from_ingest_error(exc) from exc
    return MediaRecordSchema.from_record(record)


@router.post("/upload-multiple", status_code=status.HTTP_201_CREATED)
async def upload_files(
    files: list[UploadFile] | None = File(None),
    x_user_id: str | None = Header(None),
    service: IngestService = Depends(get_ingest_service),
) -> BatchUploadResponse:
    """Upload up to ``max_batch_files`` files; per-file failures are reported inline."""
    pending = [_pending(upload, service, x_user_id) for upload in files or []]
    try:
        results = await service.ingest_batch(pending)
    except IngestError as exc:
        raise ApiError.from_ingest_error(exc) from exc

    if not any(item.ok for item in results):
        first_error = next(item.error for item in results if item.error is not None)
        raise ApiError.from_ingest_error(first_error)

    response = BatchUploadResponse.from_results(results)
    logger.info("ingest.api.batch_uploaded", extra=response.meta.model_dump())
    return response


@router.get("/")
def list_files(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    lane: MediaLane | None = Query(None),
    x_user_id: str | None = Header(None),
    service: IngestService = Depends(get_ingest_service),
) -> MediaListResponse:
    records, total = service.list_records(
        uploaded_by=x_user_id, page=page, limit=limit, lane=lane
    )
    return MediaListResponse(
        files=[MediaRecordSchema.from_record(record) for record in records],
        pagination=PaginationSchema(
            page=page, limit=limit, total=total, pages=math.ceil(total / limit)
        ),
    )


@router.get("/stats")
def file_stats(
    x_user_id: str | None = Header(None),
    service: IngestService = Depends(get_ingest_service),
) -> MediaStatsResponse:
    return MediaStatsResponse.from_stats(service.stats(uploaded_by=x_user_id))


@router.get("/{record_id}")
def get_file(
    record_id: str,
    service: IngestService = Depends(get_ingest_service),
) -> MediaRecordSchema:
    try:
        record = service.get(record_id)
    except IngestError as exc:
        raise ApiError.from_ingest_error(exc) from exc
    return MediaRecordSchema.from_record(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    record_id: str,
    service: IngestService = Depends(get_ingest_service),
) -> Response:
    """Hard delete the record; repeated deletes answer 404."""
    try:
        service.delete(record_id)
    except IngestError as exc:
        raise ApiError.from_ingest_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
