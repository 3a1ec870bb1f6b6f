"""Prioritized "best available" rendition rules.

Each media class has one ordered preference list; the first role that was
actually stored wins. Roles are compared as plain strings so the helpers work
on any mapping keyed by :class:`VariantRole` or raw role names.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

RoleT = TypeVar("RoleT", bound=str)

IMAGE_PRIORITY: tuple[str, ...] = ("compressed", "original")
VIDEO_PRIORITY: tuple[str, ...] = ("medium", "high", "low", "original")
THUMBNAIL_PRIORITY: tuple[str, ...] = ("thumbnail", "original")


def select_role(available: Iterable[RoleT], priority: Iterable[str]) -> RoleT | None:
    """Return the first role of ``priority`` present in ``available``."""
    present = {str(role): role for role in available}
    for candidate in priority:
        if candidate in present:
            return present[candidate]
    return None


def image_primary_role(available: Iterable[RoleT]) -> RoleT | None:
    return select_role(available, IMAGE_PRIORITY)


def video_primary_role(available: Iterable[RoleT]) -> RoleT | None:
    return select_role(available, VIDEO_PRIORITY)


def thumbnail_role(available: Iterable[RoleT]) -> RoleT | None:
    return select_role(available, THUMBNAIL_PRIORITY)
