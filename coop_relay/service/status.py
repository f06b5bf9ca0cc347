"""Keeps the last diagnostic status read from the backend."""

from __future__ import annotations

from datetime import datetime, timezone
import asyncio
import logging

from coop_relay.backend import BackendClient, BackendError, RelayStatus


LOGGER = logging.getLogger(__name__)


class StatusMonitor:
    def __init__(self, client: BackendClient) -> None:
        self._client = client
        self.status = RelayStatus()
        self.refreshed_at: datetime | None = None

    async def refresh(self, relay_id: str) -> RelayStatus:
        """Re-read status; on failure mark it unavailable instead of keeping stale fields."""
        try:
            status = await asyncio.to_thread(self._client.read_status, relay_id)
        except BackendError as exc:
            LOGGER.warning("Status read for relay %s failed: %s", relay_id, exc)
            status = RelayStatus.unavailable()
        self.status = status
        self.refreshed_at = datetime.now(timezone.utc)
        return status

    def clear(self) -> None:
        self.status = RelayStatus()
        self.refreshed_at = None
