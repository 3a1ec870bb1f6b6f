"""Route validated content types into processing lanes."""

from __future__ import annotations

import mimetypes
from pathlib import PurePath

from ..media.media_models import MediaLane


def classify(content_type: str) -> MediaLane:
    """Map a content type to exactly one lane.

    ``image/*`` goes through the image generator, ``video/*`` through the
    video generator and anything else accepted by the validator is stored
    as-is.
    """
    family = content_type.split("/", 1)[0].strip().lower()
    if family == "image":
        return MediaLane.IMAGE
    if family == "video":
        return MediaLane.VIDEO
    return MediaLane.PASSTHROUGH


def is_image(content_type: str | None) -> bool:
    return bool(content_type) and classify(content_type) is MediaLane.IMAGE


def is_video(content_type: str | None) -> bool:
    return bool(content_type) and classify(content_type) is MediaLane.VIDEO


LANE_FOLDERS: dict[MediaLane, str] = {
    MediaLane.IMAGE: "images",
    MediaLane.VIDEO: "videos",
    MediaLane.PASSTHROUGH: "files",
}
FALLBACK_FOLDER = "fallback"


def original_extension(filename: str | None, content_type: str) -> str:
    """Extension for the stored original: filename suffix, else guessed from the type."""
    suffix = PurePath(filename or "").suffix.lstrip(".").lower()
    if suffix:
        return suffix
    guessed = mimetypes.guess_extension(content_type, strict=False)
    return guessed.lstrip(".") if guessed else "bin"
