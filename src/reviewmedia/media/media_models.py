"""Media data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from .media_selection import image_primary_role, thumbnail_role, video_primary_role


class MediaLane(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    PASSTHROUGH = "passthrough"


class VariantRole(StrEnum):
    ORIGINAL = "original"
    COMPRESSED = "compressed"
    THUMBNAIL = "thumbnail"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


QUALITY_TIERS: tuple[VariantRole, ...] = (VariantRole.HIGH, VariantRole.MEDIUM, VariantRole.LOW)


@dataclass(frozen=True, slots=True)
class LocationDescriptor:
    """Where an object lives once its transfer has been confirmed."""

    key: str
    url: str
    bucket: str
    etag: str | None = None
    version_id: str | None = None


@dataclass(slots=True)
class GeneratedVariant:
    """In-memory encoded buffer produced by a generator, not yet stored."""

    role: VariantRole
    data: bytes
    mime_type: str
    extension: str
    width: int | None = None
    height: int | None = None
    compression_ratio: float | None = None
    processing_time_ms: int | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class ImageVariantSet:
    compressed: GeneratedVariant
    thumbnail: GeneratedVariant
    original_width: int
    original_height: int
    source_format: str

    @property
    def compression_ratio(self) -> float | None:
        return self.compressed.compression_ratio

    def variants(self) -> list[GeneratedVariant]:
        return [self.compressed, self.thumbnail]


@dataclass(slots=True)
class VideoMetadata:
    duration: float = 0.0
    fps: float | None = None
    bitrate: int | None = None
    format: str | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    audio_channels: int | None = None
    audio_sample_rate: int | None = None
    width: int | None = None
    height: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "VideoMetadata":
        known = {name: payload.get(name) for name in cls.__dataclass_fields__}
        known["duration"] = known.get("duration") or 0.0
        return cls(**known)


@dataclass(slots=True)
class VideoVariantSet:
    metadata: VideoMetadata
    tiers: dict[VariantRole, GeneratedVariant]
    thumbnail: GeneratedVariant | None = None
    failed_tiers: dict[str, str] = field(default_factory=dict)
    processing_time_ms: int = 0

    @property
    def compression_ratio(self) -> float | None:
        for role in (VariantRole.MEDIUM, VariantRole.HIGH, VariantRole.LOW):
            tier = self.tiers.get(role)
            if tier is not None:
                return tier.compression_ratio
        return None

    def variants(self) -> list[GeneratedVariant]:
        produced = list(self.tiers.values())
        if self.thumbnail is not None:
            produced.append(self.thumbnail)
        return produced


@dataclass(slots=True)
class Variant:
    """Stored rendition embedded in a :class:`MediaRecord`."""

    role: VariantRole
    location: LocationDescriptor
    mime_type: str
    size: int
    width: int | None = None
    height: int | None = None

    @property
    def url(self) -> str:
        return self.location.url

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "key": self.location.key,
            "url": self.location.url,
            "bucket": self.location.bucket,
            "etag": self.location.etag,
            "version_id": self.location.version_id,
            "mime_type": self.mime_type,
            "size": self.size,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Variant":
        return cls(
            role=VariantRole(payload["role"]),
            location=LocationDescriptor(
                key=payload["key"],
                url=payload["url"],
                bucket=payload["bucket"],
                etag=payload.get("etag"),
                version_id=payload.get("version_id"),
            ),
            mime_type=payload["mime_type"],
            size=int(payload["size"]),
            width=payload.get("width"),
            height=payload.get("height"),
        )


@dataclass(slots=True)
class ProcessingMetadata:
    processed_at: datetime
    original_size: int
    processing_time_ms: int = 0
    compression_ratio: float | None = None
    error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed_at": self.processed_at.isoformat(),
            "original_size": self.original_size,
            "processing_time_ms": self.processing_time_ms,
            "compression_ratio": self.compression_ratio,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ProcessingMetadata":
        return cls(
            processed_at=datetime.fromisoformat(payload["processed_at"]),
            original_size=int(payload["original_size"]),
            processing_time_ms=int(payload.get("processing_time_ms") or 0),
            compression_ratio=payload.get("compression_ratio"),
            error=payload.get("error"),
        )


@dataclass(slots=True)
class MediaRecord:
    """Persisted description of one upload and all of its stored variants."""

    id: str
    original_name: str
    mime_type: str
    size: int
    lane: MediaLane
    key: str
    url: str
    bucket: str
    etag: str | None
    version_id: str | None
    uploaded_by: str | None
    is_image: bool
    is_video: bool
    processing: ProcessingMetadata
    variants: dict[VariantRole, Variant] = field(default_factory=dict)
    width: int | None = None
    height: int | None = None
    video_metadata: VideoMetadata | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def _variant_url(self, role: VariantRole | None) -> str:
        if role is None or role not in self.variants:
            return self.original_url()
        return self.variants[role].url

    def original_url(self) -> str:
        original = self.variants.get(VariantRole.ORIGINAL)
        return original.url if original is not None else self.url

    def best_url(self) -> str:
        """Best available rendition: prioritized per media class, else the original."""
        if self.is_video:
            return self._variant_url(video_primary_role(self.variants))
        if self.is_image:
            return self._variant_url(image_primary_role(self.variants))
        return self.original_url()

    def thumbnail_url(self) -> str:
        return self._variant_url(thumbnail_role(self.variants))

    def formatted_size(self) -> str:
        return format_size(self.size)

    def available_qualities(self) -> list[str]:
        if not self.is_video:
            return []
        return [tier.value for tier in QUALITY_TIERS if tier in self.variants]


def format_size(size: int) -> str:
    """Render a byte count with binary units (``1.5 MB``)."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024 or unit == "GB":
            return f"{value:.2f} {unit}".replace(".00 ", " ")
    return f"{size} B"  # pragma: no cover - loop always returns
