"""Upload one captured snapshot and print its stored path."""

from __future__ import annotations

import argparse
import logging
import sys

from .exceptions import UploadError, UploaderConfigError
from .supabase import load_upload_target, upload_snapshot
from .uploader import UPLOADED_PATH_MARKER


def build_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Upload a relay snapshot to storage and notify the coop backend."
    )
    parser.add_argument("--relay-id", required=True, help="Relay id that owns the snapshot.")
    parser.add_argument("--image-path", required=True, help="Path to the .jpg image file.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="HTTP timeout in seconds (default: 30).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the uploader and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        target = load_upload_target()
    except UploaderConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        object_key = upload_snapshot(
            relay_id=args.relay_id,
            image_path=args.image_path,
            target=target,
            timeout_sec=args.timeout,
        )
    except UploadError as exc:
        print(f"Upload error: {exc}", file=sys.stderr)
        return 2

    print(f"{UPLOADED_PATH_MARKER}{object_key}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
