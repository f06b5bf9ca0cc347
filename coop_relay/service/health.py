"""Periodic liveness ping while the relay is paired."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Final
import asyncio
import logging

from coop_relay.backend import BackendClient, BackendError

from .timers import TaskRegistry


LOGGER = logging.getLogger(__name__)
HEALTH_TASK: Final[str] = "health"


class HealthReporter:
    """Pings `POST /api/relay/status` immediately and then every interval."""

    def __init__(self, client: BackendClient, timers: TaskRegistry, interval_seconds: float = 120.0) -> None:
        self._client = client
        self._timers = timers
        self.interval_seconds = interval_seconds
        self.last_ok_at: datetime | None = None
        self.last_error: str | None = None

    def start(self, relay_id: str) -> None:
        self._timers.arm(HEALTH_TASK, self._loop(relay_id))

    def stop(self) -> None:
        self._timers.cancel(HEALTH_TASK)

    async def _loop(self, relay_id: str) -> None:
        while True:
            try:
                await self.ping_once(relay_id)
            except Exception as exc:
                LOGGER.exception("Heartbeat iteration failed: %s", exc)
            await asyncio.sleep(self.interval_seconds)

    async def ping_once(self, relay_id: str) -> bool:
        try:
            await asyncio.to_thread(self._client.post_heartbeat, relay_id)
        except BackendError as exc:
            # Never touches pairing or scheduling; the next tick retries.
            LOGGER.warning("Heartbeat for relay %s failed: %s", relay_id, exc)
            self.last_error = str(exc)
            return False
        self.last_ok_at = datetime.now(timezone.utc)
        self.last_error = None
        return True
