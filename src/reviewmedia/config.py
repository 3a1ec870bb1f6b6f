"""Application configuration builder.

Limits are frozen dataclasses built once from the environment and injected
into the validator, generators and storage at construction time, so tests can
substitute tighter values without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db

MIB = 1024 * 1024

ALLOWED_CONTENT_TYPES: tuple[str, ...] = (
    # images
    "image/jpeg",
    "image/jpg",
    "image/pjpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/tiff",
    "image/tif",
    # documents
    "application/pdf",
    # video
    "video/mp4",
    "video/mpeg",
    "video/mpg",
    "video/quicktime",
    "video/avi",
    "video/mov",
    "video/wmv",
    "video/flv",
    "video/webm",
    "video/mkv",
    "video/3gp",
)


@dataclass(frozen=True, slots=True)
class IngestLimits:
    allowed_content_types: Sequence[str] = ALLOWED_CONTENT_TYPES
    absolute_cap_bytes: int = 100 * MIB
    chunk_size_bytes: int = 1 * MIB
    max_batch_files: int = 5


@dataclass(frozen=True, slots=True)
class ImageLimits:
    max_width: int = 5000
    max_height: int = 5000
    min_width: int = 10
    min_height: int = 10
    max_bytes: int = 50 * MIB
    supported_formats: Sequence[str] = ("JPEG", "PNG", "GIF", "WEBP", "TIFF", "BMP", "MPO")
    compressed_max_width: int = 1920
    compressed_max_height: int = 1080
    compressed_quality: int = 80
    thumbnail_width: int = 300
    thumbnail_height: int = 300
    thumbnail_quality: int = 70


@dataclass(frozen=True, slots=True)
class QualityPreset:
    video_bitrate: str
    audio_bitrate: str
    video_codec: str = "libx264"
    audio_codec: str = "aac"


DEFAULT_QUALITY_PRESETS: dict[str, QualityPreset] = {
    "high": QualityPreset(video_bitrate="2000k", audio_bitrate="128k"),
    "medium": QualityPreset(video_bitrate="1000k", audio_bitrate="96k"),
    "low": QualityPreset(video_bitrate="500k", audio_bitrate="64k"),
}


@dataclass(frozen=True, slots=True)
class VideoLimits:
    max_duration_seconds: float = 600.0
    max_bytes: int = 500 * MIB
    supported_formats: Sequence[str] = (
        "mp4",
        "avi",
        "mov",
        "wmv",
        "flv",
        "webm",
        "mkv",
        "matroska",
        "mpeg",
        "mpg",
        "3gp",
    )
    qualities: Sequence[str] = ("medium", "high")
    presets: dict[str, QualityPreset] = field(
        default_factory=lambda: dict(DEFAULT_QUALITY_PRESETS)
    )
    max_width: int = 1280
    max_height: int = 720
    thumbnail_width: int = 320
    thumbnail_height: int = 240
    thumbnail_offset_seconds: float = 1.0
    tier_workers: int = 2
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    command_timeout_seconds: float = 300.0


@dataclass(frozen=True, slots=True)
class StorageConfig:
    bucket: str
    region: str = "us-east-1"
    endpoint_url: str | None = None
    public_base_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    object_acl: str | None = "public-read"
    key_prefix: str = "uploads"
    multipart_threshold_bytes: int = 5 * MIB
    part_size_bytes: int = 5 * MIB
    max_workers: int = 4
    connect_timeout_seconds: int = 10
    read_timeout_seconds: int = 60


@dataclass(frozen=True, slots=True)
class ConcurrencyLimits:
    variant_transfer_concurrency: int = 3
    batch_concurrency: int = 2
    transfer_timeout_seconds: float = 120.0


@dataclass(slots=True)
class AppConfig:
    ingest_limits: IngestLimits
    image_limits: ImageLimits
    video_limits: VideoLimits
    storage: StorageConfig
    concurrency: ConcurrencyLimits
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]


class Settings(BaseSettings):
    """Environment-backed settings (prefix ``REVIEWMEDIA_``)."""

    model_config = SettingsConfigDict(env_prefix="REVIEWMEDIA_", env_file=".env", extra="ignore")

    database_url: str = Field(default="sqlite:///reviewmedia.db")
    absolute_cap_bytes: int = Field(default=100 * MIB, ge=1)
    max_batch_files: int = Field(default=5, ge=1)
    image_max_dimension: int = Field(default=5000, ge=1)
    image_max_bytes: int = Field(default=50 * MIB, ge=1)
    video_max_duration_seconds: float = Field(default=600.0, gt=0)
    video_max_bytes: int = Field(default=500 * MIB, ge=1)
    video_qualities: str = Field(
        default="medium,high",
        description="Comma separated quality tiers produced for uploaded videos.",
    )
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    s3_bucket: str = Field(default="reviewmedia-uploads")
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: str | None = None
    s3_public_base_url: str | None = None
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_object_acl: str | None = "public-read"
    multipart_threshold_bytes: int = Field(default=5 * MIB, ge=5 * MIB)
    multipart_part_size_bytes: int = Field(default=5 * MIB, ge=5 * MIB)
    multipart_workers: int = Field(default=4, ge=1, le=16)
    variant_transfer_concurrency: int = Field(default=3, ge=1)
    batch_concurrency: int = Field(default=2, ge=1)
    transfer_timeout_seconds: float = Field(default=120.0, gt=0)


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_config(**overrides: Any) -> AppConfig:
    """Load configuration from environment (SQLite by default)."""
    settings = Settings(**overrides)

    ingest_limits = IngestLimits(
        absolute_cap_bytes=settings.absolute_cap_bytes,
        max_batch_files=settings.max_batch_files,
    )
    image_limits = ImageLimits(
        max_width=settings.image_max_dimension,
        max_height=settings.image_max_dimension,
        max_bytes=settings.image_max_bytes,
    )
    video_limits = VideoLimits(
        max_duration_seconds=settings.video_max_duration_seconds,
        max_bytes=settings.video_max_bytes,
        qualities=_split_csv(settings.video_qualities),
        ffmpeg_binary=settings.ffmpeg_binary,
        ffprobe_binary=settings.ffprobe_binary,
    )
    storage = StorageConfig(
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        public_base_url=settings.s3_public_base_url,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        object_acl=settings.s3_object_acl,
        multipart_threshold_bytes=settings.multipart_threshold_bytes,
        part_size_bytes=settings.multipart_part_size_bytes,
        max_workers=settings.multipart_workers,
    )
    concurrency = ConcurrencyLimits(
        variant_transfer_concurrency=settings.variant_transfer_concurrency,
        batch_concurrency=settings.batch_concurrency,
        transfer_timeout_seconds=settings.transfer_timeout_seconds,
    )

    engine = create_engine(settings.database_url, future=True)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine)

    return AppConfig(
        ingest_limits=ingest_limits,
        image_limits=image_limits,
        video_limits=video_limits,
        storage=storage,
        concurrency=concurrency,
        database_url=settings.database_url,
        engine=engine,
        session_factory=session_factory,
    )
