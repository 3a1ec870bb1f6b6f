"""Video variant generation: metadata extraction, quality tiers and a still thumbnail.

The buffer is spilled to a private temp directory once; every tier and the
thumbnail are encoded from that file by independent ffmpeg processes running
on a small thread pool. Tiers may fail on their own; the step only fails when
no tier at all could be produced.
"""

from __future__ import annotations

import logging
import tempfile
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..config import VideoLimits
from ..ingest.ingest_errors import (
    UnsupportedVideoFormatError,
    VideoDurationTooLongError,
    VideoProcessingError,
    VideoTooLargeError,
)
from .ffmpeg_toolchain import FfmpegToolchain, ToolchainError
from .image_variants import compression_ratio
from .media_models import GeneratedVariant, VariantRole, VideoMetadata, VideoVariantSet

logger = logging.getLogger(__name__)


def parse_fps(frame_rate: str | None) -> float | None:
    """Parse ffprobe rates such as ``"30000/1001"`` or ``"25"``."""
    if not frame_rate:
        return None
    try:
        if "/" in frame_rate:
            numerator, denominator = frame_rate.split("/", 1)
            if float(denominator) == 0:
                return None
            return round(float(numerator) / float(denominator), 3)
        return round(float(frame_rate), 3)
    except ValueError:
        return None


def _to_int(value: Any) -> int | None:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def extract_metadata(probe: dict[str, Any]) -> VideoMetadata:
    """Flatten ffprobe output into :class:`VideoMetadata`."""
    fmt = probe.get("format") or {}
    streams = probe.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

    try:
        duration = float(fmt.get("duration") or 0.0)
    except (TypeError, ValueError):
        duration = 0.0

    return VideoMetadata(
        duration=duration,
        fps=parse_fps(video.get("r_frame_rate")) if video else None,
        bitrate=_to_int(fmt.get("bit_rate")),
        format=fmt.get("format_name"),
        video_codec=video.get("codec_name") if video else None,
        audio_codec=audio.get("codec_name") if audio else None,
        audio_channels=_to_int(audio.get("channels")) if audio else None,
        audio_sample_rate=_to_int(audio.get("sample_rate")) if audio else None,
        width=_to_int(video.get("width")) if video else None,
        height=_to_int(video.get("height")) if video else None,
    )


@dataclass(slots=True)
class VideoVariantGenerator:
    """Validate uploaded videos and derive quality tiers plus a thumbnail."""

    limits: VideoLimits
    toolchain: FfmpegToolchain
    log: logging.Logger = field(default_factory=lambda: logger)

    def generate(self, data: bytes) -> VideoVariantSet:
        limits = self.limits
        started = time.perf_counter()
        if len(data) > limits.max_bytes:
            raise VideoTooLargeError(
                f"Video file size too large. Maximum allowed: {limits.max_bytes // (1024 * 1024)}MB",
                details={"size_bytes": len(data), "limit_bytes": limits.max_bytes},
            )

        with tempfile.TemporaryDirectory(prefix="reviewmedia-video-") as workdir:
            root = Path(workdir)
            source = root / "source"
            source.write_bytes(data)

            metadata = self._probe(source)
            self._validate(metadata)

            variant_set = self._derive(root, source, metadata, original_size=len(data))

        variant_set.processing_time_ms = int((time.perf_counter() - started) * 1000)
        self.log.info(
            "media.video.variants_generated",
            extra={
                "duration": metadata.duration,
                "format": metadata.format,
                "tiers": [role.value for role in variant_set.tiers],
                "failed_tiers": variant_set.failed_tiers,
                "has_thumbnail": variant_set.thumbnail is not None,
                "processing_time_ms": variant_set.processing_time_ms,
            },
        )
        return variant_set

    def _probe(self, source: Path) -> VideoMetadata:
        try:
            probe = self.toolchain.probe(source)
        except ToolchainError as exc:
            raise UnsupportedVideoFormatError(f"Failed to read video metadata: {exc}") from exc
        return extract_metadata(probe)

    def _validate(self, metadata: VideoMetadata) -> None:
        limits = self.limits
        if metadata.duration > limits.max_duration_seconds:
            raise VideoDurationTooLongError(
                "Video duration too long. Maximum allowed: "
                f"{limits.max_duration_seconds:g} seconds",
                details={"duration": metadata.duration},
            )
        container = (metadata.format or "").lower()
        if not any(fmt in container for fmt in limits.supported_formats):
            raise UnsupportedVideoFormatError(
                f"Unsupported video format: {metadata.format or 'unknown'}",
                details={"format": metadata.format},
            )

    def _derive(
        self,
        root: Path,
        source: Path,
        metadata: VideoMetadata,
        *,
        original_size: int,
    ) -> VideoVariantSet:
        limits = self.limits
        tiers: dict[VariantRole, GeneratedVariant] = {}
        failed: dict[str, str] = {}
        thumbnail: GeneratedVariant | None = None

        with ThreadPoolExecutor(
            max_workers=max(1, limits.tier_workers), thread_name_prefix="video-tier"
        ) as pool:
            pending: dict[str, Future[GeneratedVariant]] = {}
            for quality in limits.qualities:
                try:
                    role = VariantRole(quality)
                except ValueError:
                    failed[quality] = "unknown quality tier"
                    continue
                if role not in limits.presets:
                    failed[quality] = "no preset configured"
                    continue
                pending[quality] = pool.submit(
                    self._encode_tier, root, source, role, original_size
                )
            thumb_future = pool.submit(self._encode_thumbnail, root, source, metadata)

            for quality, future in pending.items():
                try:
                    variant = future.result()
                except ToolchainError as exc:
                    failed[quality] = str(exc)
                    self.log.warning(
                        "media.video.tier_failed",
                        extra={"quality": quality, "error": str(exc)},
                    )
                    continue
                tiers[variant.role] = variant

            try:
                thumbnail = thumb_future.result()
            except ToolchainError as exc:
                self.log.warning("media.video.thumbnail_failed", extra={"error": str(exc)})

        if not tiers:
            raise VideoProcessingError(
                "Video compression failed for every quality tier",
                details={"failed_tiers": failed},
            )
        return VideoVariantSet(
            metadata=metadata,
            tiers=tiers,
            thumbnail=thumbnail,
            failed_tiers=failed,
        )

    def _encode_tier(
        self, root: Path, source: Path, role: VariantRole, original_size: int
    ) -> GeneratedVariant:
        limits = self.limits
        target = root / f"{role.value}.mp4"
        started = time.perf_counter()
        self.toolchain.transcode(
            source,
            target,
            limits.presets[role.value],
            max_width=limits.max_width,
            max_height=limits.max_height,
        )
        payload = _read_output(target)
        return GeneratedVariant(
            role=role,
            data=payload,
            mime_type="video/mp4",
            extension="mp4",
            width=limits.max_width,
            height=limits.max_height,
            compression_ratio=compression_ratio(original_size, len(payload)),
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )

    def _encode_thumbnail(
        self, root: Path, source: Path, metadata: VideoMetadata
    ) -> GeneratedVariant:
        limits = self.limits
        offset = limits.thumbnail_offset_seconds
        if metadata.duration > 0:
            offset = min(offset, metadata.duration / 2)
        else:
            offset = 0.0
        target = root / "thumbnail.webp"
        self.toolchain.extract_frame(
            source,
            target,
            offset_seconds=offset,
            width=limits.thumbnail_width,
            height=limits.thumbnail_height,
        )
        return GeneratedVariant(
            role=VariantRole.THUMBNAIL,
            data=_read_output(target),
            mime_type="image/webp",
            extension="webp",
            width=limits.thumbnail_width,
            height=limits.thumbnail_height,
        )


def _read_output(path: Path) -> bytes:
    try:
        payload = path.read_bytes()
    except OSError as exc:
        raise ToolchainError(f"missing ffmpeg output {path.name}") from exc
    if not payload:
        raise ToolchainError(f"empty ffmpeg output {path.name}")
    return payload
