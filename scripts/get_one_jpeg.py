"""Capture one JPEG frame from a camera stream (relay capture diagnostics)."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from coop_relay.camera import capture_frame_to_file, redact_credentials
from coop_relay.camera.exceptions import CameraModuleError


def build_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Capture one JPEG frame from an RTSP/HTTP camera stream."
    )
    parser.add_argument(
        "--rtsp-url",
        required=True,
        help="Stream address to grab the frame from.",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Path to output JPEG file.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Capture timeout in seconds (default: 30).",
    )
    parser.add_argument(
        "--ffmpeg-bin",
        default="ffmpeg",
        help="ffmpeg executable (default: ffmpeg).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the script and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    output_path = str(Path(args.output).expanduser().resolve())
    try:
        result = capture_frame_to_file(
            stream_url=args.rtsp_url,
            output_path=output_path,
            ffmpeg_bin=args.ffmpeg_bin,
            timeout_sec=args.timeout,
        )
    except CameraModuleError as exc:
        print(f"Camera capture error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:  # pragma: no cover - defensive guard
        print(f"Unexpected error: {redact_credentials(str(exc))}", file=sys.stderr)
        return 1

    print(f"Saved JPEG: {result.output_path} ({result.size_bytes} bytes from {result.stream_host})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
