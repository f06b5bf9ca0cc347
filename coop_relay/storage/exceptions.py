"""Custom exceptions for snapshot uploads."""


class UploadModuleError(Exception):
    """Base exception for upload-related failures."""


class UploadError(UploadModuleError):
    """Raised when the uploader fails to store a snapshot."""


class UploaderConfigError(UploadModuleError):
    """Raised when uploader credentials or binaries are not available."""
