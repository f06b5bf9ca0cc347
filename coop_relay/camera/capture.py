"""Grab one still frame from a camera stream with ffmpeg."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final
from urllib.parse import urlparse
import re
import shutil
import subprocess

from .exceptions import DependencyMissingError, FrameCaptureError


DEFAULT_FFMPEG_BIN: Final[str] = "ffmpeg"
DEFAULT_JPEG_QUALITY: Final[int] = 2
CREDENTIALS_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/\s@]+@", re.I)


@dataclass(frozen=True, slots=True)
class CaptureResult:
    """Metadata for a completed frame capture."""

    output_path: str
    stream_host: str
    size_bytes: int
    captured_at_utc: datetime


class CaptureExecutor:
    """Runs ffmpeg against a stream address and writes a single JPEG."""

    def __init__(
        self,
        ffmpeg_bin: str = DEFAULT_FFMPEG_BIN,
        timeout_sec: float = 30.0,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout_sec = timeout_sec
        self.jpeg_quality = jpeg_quality

    def capture(self, stream_url: str, output_path: str) -> CaptureResult:
        return capture_frame_to_file(
            stream_url=stream_url,
            output_path=output_path,
            ffmpeg_bin=self.ffmpeg_bin,
            timeout_sec=self.timeout_sec,
            jpeg_quality=self.jpeg_quality,
        )


def capture_frame_to_file(
    stream_url: str,
    output_path: str,
    ffmpeg_bin: str = DEFAULT_FFMPEG_BIN,
    timeout_sec: float = 30.0,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> CaptureResult:
    """Capture one frame from the stream and save it as JPEG."""
    if not stream_url:
        raise FrameCaptureError("No stream address to capture from.")
    if shutil.which(ffmpeg_bin) is None:
        raise DependencyMissingError(f"Required binary not found in PATH: {ffmpeg_bin}")

    target = Path(output_path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)

    _run_ffmpeg_capture(
        stream_url=stream_url,
        output_path=target,
        ffmpeg_bin=ffmpeg_bin,
        timeout_sec=timeout_sec,
        jpeg_quality=jpeg_quality,
    )
    return CaptureResult(
        output_path=str(target),
        stream_host=urlparse(stream_url).hostname or "",
        size_bytes=target.stat().st_size,
        captured_at_utc=datetime.now(timezone.utc),
    )


def build_ffmpeg_command(
    stream_url: str,
    output_path: Path,
    ffmpeg_bin: str,
    jpeg_quality: int,
) -> list[str]:
    command = [ffmpeg_bin, "-hide_banner", "-loglevel", "error"]
    if stream_url.lower().startswith("rtsp://"):
        command += ["-rtsp_transport", "tcp"]
    command += [
        "-i",
        stream_url,
        "-frames:v",
        "1",
        "-q:v",
        str(jpeg_quality),
        "-y",
        str(output_path),
    ]
    return command


def _run_ffmpeg_capture(
    stream_url: str,
    output_path: Path,
    ffmpeg_bin: str,
    timeout_sec: float,
    jpeg_quality: int,
) -> None:
    command = build_ffmpeg_command(stream_url, output_path, ffmpeg_bin, jpeg_quality)

    try:
        subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout_sec,
        )
    except FileNotFoundError as exc:
        raise DependencyMissingError(f"Required binary not found in PATH: {ffmpeg_bin}") from exc
    except subprocess.TimeoutExpired as exc:
        raise FrameCaptureError("ffmpeg timed out while capturing frame.") from exc
    except subprocess.CalledProcessError as exc:
        output = redact_credentials(f"{exc.stdout or ''}{exc.stderr or ''}")
        raise FrameCaptureError(f"ffmpeg failed: {output.strip()}") from exc

    if not output_path.exists() or output_path.stat().st_size == 0:
        raise FrameCaptureError("ffmpeg completed but output JPEG was not created.")


def redact_credentials(value: str) -> str:
    """Hide user:password pairs embedded in stream URLs."""
    return CREDENTIALS_PATTERN.sub(r"\g<scheme><redacted>@", value)
