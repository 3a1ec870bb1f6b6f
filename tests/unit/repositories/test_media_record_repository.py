from datetime import datetime, timedelta, timezone

import pytest

from src.reviewmedia.exceptions import DuplicateRecordError
from src.reviewmedia.media.media_models import (
    LocationDescriptor,
    MediaLane,
    MediaRecord,
    ProcessingMetadata,
    Variant,
    VariantRole,
    VideoMetadata,
)
from src.reviewmedia.repositories.media_record_repository import MediaRecordRepository


def build_record(
    record_id: str,
    *,
    lane: MediaLane = MediaLane.IMAGE,
    uploaded_by: str | None = "user-1",
    size: int = 1000,
    error: str | None = None,
    created_at: datetime | None = None,
) -> MediaRecord:
    key = f"uploads/{lane.value}/{record_id}.bin"
    original = Variant(
        role=VariantRole.ORIGINAL,
        location=LocationDescriptor(
            key=key, url=f"https://cdn.test/{key}", bucket="bucket", etag='"abc"', version_id="v1"
        ),
        mime_type="application/octet-stream",
        size=size,
    )
    return MediaRecord(
        id=record_id,
        original_name=f"{record_id}.bin",
        mime_type="video/mp4" if lane is MediaLane.VIDEO else "image/png",
        size=size,
        lane=lane,
        key=key,
        url=original.url,
        bucket="bucket",
        etag='"abc"',
        version_id="v1",
        uploaded_by=uploaded_by,
        is_image=lane is MediaLane.IMAGE,
        is_video=lane is MediaLane.VIDEO,
        processing=ProcessingMetadata(
            processed_at=datetime.now(timezone.utc),
            original_size=size,
            processing_time_ms=12,
            compression_ratio=None if error else 0.5,
            error=error,
        ),
        variants={VariantRole.ORIGINAL: original},
        video_metadata=VideoMetadata(duration=3.5, fps=25.0) if lane is MediaLane.VIDEO else None,
        created_at=created_at or datetime.now(timezone.utc),
    )


def test_create_and_get_round_trip(session_factory) -> None:
    repo = MediaRecordRepository(session_factory)
    record = build_record("a" * 32, lane=MediaLane.VIDEO)

    repo.create(record)

    assert repo.get(record.id) == record
    assert repo.get(record.id).created_at.tzinfo is not None
    assert repo.get("missing") is None


def test_list_is_paginated_newest_first(session_factory) -> None:
    repo = MediaRecordRepository(session_factory)
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for index in range(5):
        repo.create(build_record(f"rec{index}", created_at=base + timedelta(minutes=index)))
    repo.create(build_record("other", uploaded_by="user-2"))

    first_page, total = repo.list_records(uploaded_by="user-1", page=1, limit=2)
    last_page, _ = repo.list_records(uploaded_by="user-1", page=3, limit=2)

    assert total == 5
    assert [item.id for item in first_page] == ["rec4", "rec3"]
    assert [item.id for item in last_page] == ["rec0"]


def test_list_filters_by_lane(session_factory) -> None:
    repo = MediaRecordRepository(session_factory)
    repo.create(build_record("img"))
    repo.create(build_record("vid", lane=MediaLane.VIDEO))

    items, total = repo.list_records(lane=MediaLane.VIDEO)

    assert total == 1
    assert items[0].id == "vid"


def test_stats_counts_lanes_sizes_and_degraded(session_factory) -> None:
    repo = MediaRecordRepository(session_factory)
    repo.create(build_record("img", size=1024))
    repo.create(build_record("vid", lane=MediaLane.VIDEO, size=2048))
    repo.create(build_record("doc", lane=MediaLane.PASSTHROUGH, size=100, error=None))
    repo.create(build_record("bad", size=10, error="Unsupported image format"))
    repo.create(build_record("foreign", uploaded_by="user-2", size=5))

    stats = repo.stats(uploaded_by="user-1")

    assert stats.total_files == 4
    assert stats.total_size == 1024 + 2048 + 100 + 10
    assert (stats.images, stats.videos, stats.other) == (2, 1, 1)
    assert stats.degraded == 1
    assert repo.stats().total_files == 5


def test_delete_is_idempotent(session_factory) -> None:
    repo = MediaRecordRepository(session_factory)
    repo.create(build_record("gone"))

    assert repo.delete("gone") is True
    assert repo.delete("gone") is False
    assert repo.get("gone") is None


def test_duplicate_id_is_rejected(session_factory) -> None:
    repo = MediaRecordRepository(session_factory)
    repo.create(build_record("dup"))

    with pytest.raises(DuplicateRecordError) as excinfo:
        repo.create(build_record("dup"))

    assert excinfo.value.entity == "media_record"
