"""Camera integrations for the coop relay."""

from .capture import (
    CaptureExecutor,
    CaptureResult,
    capture_frame_to_file,
    redact_credentials,
)
from .exceptions import (
    CameraModuleError,
    DependencyMissingError,
    FrameCaptureError,
)

__all__ = [
    "CameraModuleError",
    "CaptureExecutor",
    "CaptureResult",
    "DependencyMissingError",
    "FrameCaptureError",
    "capture_frame_to_file",
    "redact_credentials",
]
