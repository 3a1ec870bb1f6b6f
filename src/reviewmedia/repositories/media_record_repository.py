"""Persistence layer for media_record rows."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db.db_models import MediaRecordModel
from ..exceptions import handle_sqlalchemy_errors
from ..media.media_models import (
    MediaLane,
    MediaRecord,
    ProcessingMetadata,
    Variant,
    VariantRole,
    VideoMetadata,
)


@dataclass(slots=True)
class MediaStats:
    total_files: int = 0
    total_size: int = 0
    images: int = 0
    videos: int = 0
    other: int = 0
    degraded: int = 0
    by_lane: dict[str, int] = field(default_factory=dict)


class MediaRecordRepository:
    """Create, read and hard-delete media records."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create(self, record: MediaRecord) -> MediaRecord:
        with handle_sqlalchemy_errors(entity="media_record"):
            with self._session_factory() as session:
                session.add(self._to_model(record))
                session.commit()
        return record

    def get(self, record_id: str) -> MediaRecord | None:
        with handle_sqlalchemy_errors(entity="media_record"):
            with self._session_factory() as session:
                model = session.get(MediaRecordModel, record_id)
                return self._to_domain(model) if model is not None else None

    def list_records(
        self,
        *,
        uploaded_by: str | None = None,
        page: int = 1,
        limit: int = 20,
        lane: MediaLane | None = None,
    ) -> tuple[list[MediaRecord], int]:
        """Return one page (newest first) and the total number of matches."""
        page = max(1, page)
        limit = max(1, limit)
        filters = []
        if uploaded_by is not None:
            filters.append(MediaRecordModel.uploaded_by == uploaded_by)
        if lane is not None:
            filters.append(MediaRecordModel.lane == lane.value)

        with handle_sqlalchemy_errors(entity="media_record"):
            with self._session_factory() as session:
                total = session.scalar(
                    select(func.count()).select_from(MediaRecordModel).where(*filters)
                ) or 0
                rows = session.scalars(
                    select(MediaRecordModel)
                    .where(*filters)
                    .order_by(MediaRecordModel.created_at.desc(), MediaRecordModel.id)
                    .offset((page - 1) * limit)
                    .limit(limit)
                ).all()
                return [self._to_domain(row) for row in rows], int(total)

    def stats(self, *, uploaded_by: str | None = None) -> MediaStats:
        filters = []
        if uploaded_by is not None:
            filters.append(MediaRecordModel.uploaded_by == uploaded_by)

        with handle_sqlalchemy_errors(entity="media_record"):
            with self._session_factory() as session:
                rows = session.execute(
                    select(
                        MediaRecordModel.lane,
                        func.count(MediaRecordModel.id),
                        func.coalesce(func.sum(MediaRecordModel.size), 0),
                    )
                    .where(*filters)
                    .group_by(MediaRecordModel.lane)
                ).all()
                degraded = session.scalar(
                    select(func.count())
                    .select_from(MediaRecordModel)
                    .where(*filters, MediaRecordModel.processing_error.is_not(None))
                ) or 0

        stats = MediaStats(degraded=int(degraded))
        for lane, count, size in rows:
            stats.by_lane[lane] = int(count)
            stats.total_files += int(count)
            stats.total_size += int(size)
        stats.images = stats.by_lane.get(MediaLane.IMAGE.value, 0)
        stats.videos = stats.by_lane.get(MediaLane.VIDEO.value, 0)
        stats.other = stats.by_lane.get(MediaLane.PASSTHROUGH.value, 0)
        return stats

    def delete(self, record_id: str) -> bool:
        """Hard delete; ``False`` when the record is already gone."""
        with handle_sqlalchemy_errors(entity="media_record"):
            with self._session_factory() as session:
                model = session.get(MediaRecordModel, record_id)
                if model is None:
                    return False
                session.delete(model)
                session.commit()
                return True

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        # naive values are UTC; SQLite drops the offset on the way back
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @staticmethod
    def _to_model(record: MediaRecord) -> MediaRecordModel:
        video = record.video_metadata
        return MediaRecordModel(
            id=record.id,
            original_name=record.original_name,
            mime_type=record.mime_type,
            size=record.size,
            lane=record.lane.value,
            storage_key=record.key,
            url=record.url,
            bucket=record.bucket,
            etag=record.etag,
            version_id=record.version_id,
            uploaded_by=record.uploaded_by,
            is_image=record.is_image,
            is_video=record.is_video,
            width=record.width,
            height=record.height,
            duration=video.duration if video is not None else None,
            video_metadata_json=json.dumps(video.to_dict()) if video is not None else None,
            variants_json=json.dumps(
                {role.value: variant.to_dict() for role, variant in record.variants.items()}
            ),
            processing_json=json.dumps(record.processing.to_dict()),
            processing_error=record.processing.error,
            created_at=MediaRecordRepository._as_utc(record.created_at),
        )

    @staticmethod
    def _to_domain(model: MediaRecordModel) -> MediaRecord:
        variants = {
            VariantRole(role): Variant.from_dict(payload)
            for role, payload in json.loads(model.variants_json or "{}").items()
        }
        if model.processing_json:
            processing = ProcessingMetadata.from_dict(json.loads(model.processing_json))
        else:
            processing = ProcessingMetadata(
                processed_at=MediaRecordRepository._as_utc(model.created_at),
                original_size=model.size,
                error=model.processing_error,
            )
        video_metadata = (
            VideoMetadata.from_dict(json.loads(model.video_metadata_json))
            if model.video_metadata_json
            else None
        )
        return MediaRecord(
            id=model.id,
            original_name=model.original_name,
            mime_type=model.mime_type,
            size=model.size,
            lane=MediaLane(model.lane),
            key=model.storage_key,
            url=model.url,
            bucket=model.bucket,
            etag=model.etag,
            version_id=model.version_id,
            uploaded_by=model.uploaded_by,
            is_image=model.is_image,
            is_video=model.is_video,
            processing=processing,
            variants=variants,
            width=model.width,
            height=model.height,
            video_metadata=video_metadata,
            created_at=MediaRecordRepository._as_utc(model.created_at),
        )
