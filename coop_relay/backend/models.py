"""Typed request/response payloads for the relay endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final


CONFIG_SENTINEL_INTERVAL: Final[str] = "-"


@dataclass(frozen=True)
class PairingCodeGrant:
    pairing_code: str
    relay_id: str


@dataclass(frozen=True)
class PairingStatus:
    """Response of `GET /api/relay/config?pairing_code=`."""

    status: str
    relay_id: str | None = None
    coop_id: str | None = None

    @property
    def is_claimed(self) -> bool:
        return self.status == "claimed" and bool(self.relay_id)


@dataclass(frozen=True)
class RelayConfig:
    """Backend-assigned capture settings, replaced as a whole on every poll."""

    interval: str = CONFIG_SENTINEL_INTERVAL
    rtsp_url: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RelayConfig":
        interval = payload.get("interval")
        rtsp_url = payload.get("rtsp_url")
        return cls(
            interval=str(interval) if interval else CONFIG_SENTINEL_INTERVAL,
            rtsp_url=str(rtsp_url) if rtsp_url else None,
        )


@dataclass(frozen=True)
class RelayStatus:
    """Diagnostic snapshot of what the backend knows about this relay."""

    last_seen_at: str | None = None
    latest_snapshot_path: str | None = None
    rtsp_url: str | None = None
    available: bool = True

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RelayStatus":
        latest = payload.get("latest_snapshot")
        if isinstance(latest, dict):
            latest = latest.get("image_path")
        return cls(
            last_seen_at=payload.get("last_seen_at") or None,
            latest_snapshot_path=str(latest) if latest else None,
            rtsp_url=payload.get("rtsp_url") or None,
        )

    @classmethod
    def unavailable(cls) -> "RelayStatus":
        return cls(available=False)


@dataclass(frozen=True)
class ClaimResult:
    relay_id: str
    status: str


@dataclass(frozen=True)
class SnapshotRecord:
    id: str
    created_at: str | None
    image_path: str | None
