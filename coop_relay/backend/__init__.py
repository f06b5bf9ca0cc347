"""Coop backend client."""

from .client import BackendClient
from .exceptions import (
    BackendError,
    BackendHTTPError,
    BackendProtocolError,
    BackendTransportError,
)
from .models import (
    CONFIG_SENTINEL_INTERVAL,
    ClaimResult,
    PairingCodeGrant,
    PairingStatus,
    RelayConfig,
    RelayStatus,
    SnapshotRecord,
)

__all__ = [
    "BackendClient",
    "BackendError",
    "BackendHTTPError",
    "BackendProtocolError",
    "BackendTransportError",
    "CONFIG_SENTINEL_INTERVAL",
    "ClaimResult",
    "PairingCodeGrant",
    "PairingStatus",
    "RelayConfig",
    "RelayStatus",
    "SnapshotRecord",
]
