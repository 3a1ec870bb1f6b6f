"""Thin wrapper around the ``ffprobe`` / ``ffmpeg`` executables."""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import QualityPreset

logger = logging.getLogger(__name__)


class ToolchainError(RuntimeError):
    """Raised when an ffmpeg/ffprobe invocation fails."""


@dataclass(slots=True)
class FfmpegToolchain:
    """Decode, measure and re-encode video files on disk."""

    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    timeout_seconds: float = 300.0

    def probe(self, source: Path) -> dict[str, Any]:
        """Return ffprobe's ``format`` + ``streams`` JSON for ``source``."""
        result = self._run(
            [
                self.ffprobe_binary,
                "-v",
                "quiet",
                "-print_format",
                "json",
                "-show_format",
                "-show_streams",
                str(source),
            ]
        )
        try:
            payload = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ToolchainError(f"ffprobe returned invalid JSON: {exc}") from exc
        if not payload.get("format"):
            raise ToolchainError("ffprobe could not detect a container format")
        return payload

    def transcode(
        self,
        source: Path,
        target: Path,
        preset: QualityPreset,
        *,
        max_width: int,
        max_height: int,
    ) -> None:
        scale = (
            f"scale=w={max_width}:h={max_height}:force_original_aspect_ratio=decrease,"
            f"pad={max_width}:{max_height}:(ow-iw)/2:(oh-ih)/2,setsar=1"
        )
        self._run(
            [
                self.ffmpeg_binary,
                "-hide_banner",
                "-loglevel",
                "error",
                "-y",
                "-i",
                str(source),
                "-c:v",
                preset.video_codec,
                "-b:v",
                preset.video_bitrate,
                "-c:a",
                preset.audio_codec,
                "-b:a",
                preset.audio_bitrate,
                "-vf",
                scale,
                "-movflags",
                "+faststart",
                "-f",
                "mp4",
                str(target),
            ]
        )

    def extract_frame(
        self,
        source: Path,
        target: Path,
        *,
        offset_seconds: float,
        width: int,
        height: int,
    ) -> None:
        self._run(
            [
                self.ffmpeg_binary,
                "-hide_banner",
                "-loglevel",
                "error",
                "-y",
                "-ss",
                f"{offset_seconds:.3f}",
                "-i",
                str(source),
                "-frames:v",
                "1",
                "-vf",
                f"scale={width}:{height}",
                "-c:v",
                "libwebp",
                str(target),
            ]
        )

    def _run(self, command: list[str]) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else f"exit code {exc.returncode}"
            raise ToolchainError(f"{command[0]} failed: {detail}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ToolchainError(f"{command[0]} timed out after {self.timeout_seconds}s") from exc
        except FileNotFoundError as exc:
            raise ToolchainError(f"{command[0]} is not installed") from exc
