"""Snapshot upload helpers."""

from .exceptions import UploadError, UploadModuleError, UploaderConfigError
from .uploader import (
    UPLOADED_PATH_MARKER,
    UploadResult,
    UploaderExecutor,
    fallback_image_path,
    parse_uploaded_path,
)

__all__ = [
    "UPLOADED_PATH_MARKER",
    "UploadError",
    "UploadModuleError",
    "UploadResult",
    "UploaderConfigError",
    "UploaderExecutor",
    "fallback_image_path",
    "parse_uploaded_path",
]
