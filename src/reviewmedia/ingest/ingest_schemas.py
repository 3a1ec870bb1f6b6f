"""Pydantic schemas for file API responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..media.media_models import MediaRecord, Variant, format_size
from ..repositories.media_record_repository import MediaStats
from .ingest_models import BatchItemResult


class VariantSchema(BaseModel):
    role: str
    url: str
    key: str
    mime_type: str
    size: int
    width: int | None = None
    height: int | None = None

    @classmethod
    def from_variant(cls, variant: Variant) -> "VariantSchema":
        return cls(
            role=variant.role.value,
            url=variant.url,
            key=variant.location.key,
            mime_type=variant.mime_type,
            size=variant.size,
            width=variant.width,
            height=variant.height,
        )


class ProcessingSchema(BaseModel):
    processed_at: datetime
    original_size: int
    processing_time_ms: int
    compression_ratio: float | None = None
    error: str | None = None


class MediaRecordSchema(BaseModel):
    id: str
    original_name: str
    mime_type: str
    size: int
    formatted_size: str
    lane: str
    key: str
    url: str
    bucket: str
    etag: str | None = None
    version_id: str | None = None
    uploaded_by: str | None = None
    is_image: bool
    is_video: bool
    width: int | None = None
    height: int | None = None
    best_url: str
    thumbnail_url: str
    available_qualities: list[str] = Field(default_factory=list)
    video_metadata: dict[str, Any] | None = None
    variants: dict[str, VariantSchema] = Field(default_factory=dict)
    processing: ProcessingSchema
    created_at: datetime

    @classmethod
    def from_record(cls, record: MediaRecord) -> "MediaRecordSchema":
        return cls(
            id=record.id,
            original_name=record.original_name,
            mime_type=record.mime_type,
            size=record.size,
            formatted_size=record.formatted_size(),
            lane=record.lane.value,
            key=record.key,
            url=record.url,
            bucket=record.bucket,
            etag=record.etag,
            version_id=record.version_id,
            uploaded_by=record.uploaded_by,
            is_image=record.is_image,
            is_video=record.is_video,
            width=record.width,
            height=record.height,
            best_url=record.best_url(),
            thumbnail_url=record.thumbnail_url(),
            available_qualities=record.available_qualities(),
            video_metadata=record.video_metadata.to_dict() if record.video_metadata else None,
            variants={
                role.value: VariantSchema.from_variant(variant)
                for role, variant in record.variants.items()
            },
            processing=ProcessingSchema(
                processed_at=record.processing.processed_at,
                original_size=record.processing.original_size,
                processing_time_ms=record.processing.processing_time_ms,
                compression_ratio=record.processing.compression_ratio,
                error=record.processing.error,
            ),
            created_at=record.created_at,
        )


class ErrorDetailSchema(BaseModel):
    code: str
    message: str
    statusCode: int
    details: dict[str, Any] = Field(default_factory=dict)


class BatchErrorSchema(BaseModel):
    index: int
    filename: str
    error: ErrorDetailSchema


class BatchMetaSchema(BaseModel):
    total: int
    uploaded: int
    failed: int


class BatchUploadResponse(BaseModel):
    files: list[MediaRecordSchema]
    errors: list[BatchErrorSchema]
    meta: BatchMetaSchema

    @classmethod
    def from_results(cls, results: list[BatchItemResult]) -> "BatchUploadResponse":
        files = [MediaRecordSchema.from_record(item.record) for item in results if item.record]
        errors = [
            BatchErrorSchema(
                index=item.index,
                filename=item.filename,
                error=ErrorDetailSchema(**item.error.to_dict()),
            )
            for item in results
            if item.error is not None
        ]
        return cls(
            files=files,
            errors=errors,
            meta=BatchMetaSchema(total=len(results), uploaded=len(files), failed=len(errors)),
        )


class PaginationSchema(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class MediaListResponse(BaseModel):
    files: list[MediaRecordSchema]
    pagination: PaginationSchema


class MediaStatsResponse(BaseModel):
    total_files: int
    total_size: int
    formatted_total_size: str
    images: int
    videos: int
    other: int
    degraded: int

    @classmethod
    def from_stats(cls, stats: MediaStats) -> "MediaStatsResponse":
        return cls(
            total_files=stats.total_files,
            total_size=stats.total_size,
            formatted_total_size=format_size(stats.total_size),
            images=stats.images,
            videos=stats.videos,
            other=stats.other,
            degraded=stats.degraded,
        )
