"""Image variant generation backed by Pillow.

Produces the ``compressed`` primary rendition (bounded box, WebP) and a fixed
geometry ``thumbnail`` (center-cropped cover fit, WebP) from an uploaded
image buffer. Intrinsic constraints are re-checked against the decoded
header because the declared metadata may lie about the real content.
"""

from __future__ import annotations

import io
import logging
import time
from dataclasses import dataclass, field

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import ImageLimits
from ..ingest.ingest_errors import (
    ImageDimensionsTooLargeError,
    ImageDimensionsTooSmallError,
    ImageTooLargeError,
    UnsupportedImageFormatError,
)
from .media_models import GeneratedVariant, ImageVariantSet, VariantRole

logger = logging.getLogger(__name__)


def compression_ratio(original_size: int, compressed_size: int) -> float:
    """``(original - compressed) / original``; negative when output grew."""
    if original_size <= 0:
        return 0.0
    return round((original_size - compressed_size) / original_size, 4)


@dataclass(slots=True)
class ImageVariantGenerator:
    """Decode, validate and re-encode uploaded images."""

    limits: ImageLimits
    log: logging.Logger = field(default_factory=lambda: logger)

    def validate_constraints(self, data: bytes) -> tuple[int, int, str]:
        """Check size, pixel dimensions and format; return ``(width, height, format)``."""
        limits = self.limits
        if len(data) > limits.max_bytes:
            raise ImageTooLargeError(
                f"Image file size too large. Maximum allowed: {limits.max_bytes // (1024 * 1024)}MB",
                details={"size_bytes": len(data), "limit_bytes": limits.max_bytes},
            )

        try:
            with Image.open(io.BytesIO(data)) as probe:
                width, height = probe.size
                image_format = (probe.format or "").upper()
        except Image.DecompressionBombError as exc:
            raise ImageDimensionsTooLargeError(
                f"Image dimensions too large. Maximum: {limits.max_width}x{limits.max_height}"
            ) from exc
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise UnsupportedImageFormatError(
                f"Unsupported image format: {exc}"
            ) from exc

        if width > limits.max_width or height > limits.max_height:
            raise ImageDimensionsTooLargeError(
                f"Image dimensions too large. Maximum: {limits.max_width}x{limits.max_height}",
                details={"width": width, "height": height},
            )
        if width < limits.min_width or height < limits.min_height:
            raise ImageDimensionsTooSmallError(
                f"Image dimensions too small. Minimum: {limits.min_width}x{limits.min_height}",
                details={"width": width, "height": height},
            )
        if image_format not in {fmt.upper() for fmt in limits.supported_formats}:
            raise UnsupportedImageFormatError(
                f"Unsupported image format: {image_format or 'unknown'}",
                details={"format": image_format},
            )
        return width, height, image_format

    def generate(self, data: bytes, content_type: str) -> ImageVariantSet:
        """Validate the buffer and produce ``compressed`` + ``thumbnail`` variants."""
        started = time.perf_counter()
        width, height, image_format = self.validate_constraints(data)

        try:
            with Image.open(io.BytesIO(data)) as source:
                source.load()
                image = self._normalize_mode(source)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise UnsupportedImageFormatError(f"Image decoding failed: {exc}") from exc

        compressed = self._compressed(image, original_size=len(data))
        thumbnail = self._thumbnail(image)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        compressed.processing_time_ms = elapsed_ms

        self.log.info(
            "media.image.variants_generated",
            extra={
                "content_type": content_type,
                "source_format": image_format,
                "source_dimensions": f"{width}x{height}",
                "original_size": len(data),
                "compressed_size": compressed.size,
                "thumbnail_size": thumbnail.size,
                "compression_ratio": compressed.compression_ratio,
                "processing_time_ms": elapsed_ms,
            },
        )
        return ImageVariantSet(
            compressed=compressed,
            thumbnail=thumbnail,
            original_width=width,
            original_height=height,
            source_format=image_format,
        )

    def _compressed(self, image: Image.Image, *, original_size: int) -> GeneratedVariant:
        limits = self.limits
        resized = image.copy()
        # fit inside the box, never enlarge
        resized.thumbnail(
            (limits.compressed_max_width, limits.compressed_max_height),
            Image.Resampling.LANCZOS,
        )
        payload = _encode_webp(resized, quality=limits.compressed_quality)
        return GeneratedVariant(
            role=VariantRole.COMPRESSED,
            data=payload,
            mime_type="image/webp",
            extension="webp",
            width=resized.width,
            height=resized.height,
            compression_ratio=compression_ratio(original_size, len(payload)),
        )

    def _thumbnail(self, image: Image.Image) -> GeneratedVariant:
        limits = self.limits
        size = (limits.thumbnail_width, limits.thumbnail_height)
        fitted = ImageOps.fit(
            image,
            size,
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )
        payload = _encode_webp(fitted, quality=limits.thumbnail_quality)
        return GeneratedVariant(
            role=VariantRole.THUMBNAIL,
            data=payload,
            mime_type="image/webp",
            extension="webp",
            width=fitted.width,
            height=fitted.height,
        )

    @staticmethod
    def _normalize_mode(image: Image.Image) -> Image.Image:
        if image.mode in ("RGB", "RGBA"):
            return image.copy()
        if image.mode in ("LA", "PA") or (image.mode == "P" and "transparency" in image.info):
            return image.convert("RGBA")
        return image.convert("RGB")


def _encode_webp(image: Image.Image, *, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP", quality=quality, method=4)
    return buffer.getvalue()
