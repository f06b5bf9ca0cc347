"""Refreshes backend-assigned relay config while paired."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Final
import asyncio
import logging
import random

from coop_relay.backend import BackendClient, BackendError, RelayConfig

from .timers import TaskRegistry


LOGGER = logging.getLogger(__name__)
CONFIG_POLL_TASK: Final[str] = "config_poll"


class ConfigPoller:
    """Fetches config by relay id every `base_seconds` plus up to as much jitter again.

    `config` is always a complete RelayConfig from a single response; a
    failed fetch only sets `error` and keeps the previous value.
    """

    def __init__(
        self,
        client: BackendClient,
        timers: TaskRegistry,
        base_seconds: float = 30.0,
        on_change: Callable[[RelayConfig], None] | None = None,
        jitter: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self._client = client
        self._timers = timers
        self.base_seconds = base_seconds
        self._on_change = on_change
        self._jitter = jitter
        self.config = RelayConfig()
        self.error: str | None = None
        self.fetched_at: datetime | None = None
        self.relay_id: str | None = None

    def start(self, relay_id: str) -> None:
        self.relay_id = relay_id
        self._timers.arm(CONFIG_POLL_TASK, self._loop())

    def stop(self) -> None:
        self._timers.cancel(CONFIG_POLL_TASK)
        self.relay_id = None
        self.config = RelayConfig()
        self.error = None

    def next_delay(self) -> float:
        return self.base_seconds + self._jitter(0.0, self.base_seconds)

    async def _loop(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as exc:
                LOGGER.exception("Config poll iteration failed: %s", exc)
            await asyncio.sleep(self.next_delay())

    async def refresh(self) -> bool:
        relay_id = self.relay_id
        if not relay_id:
            return False
        try:
            config = await asyncio.to_thread(self._client.get_config, relay_id)
        except BackendError as exc:
            LOGGER.warning("Config fetch for relay %s failed: %s", relay_id, exc)
            self.error = f"Config fetch failed: {exc}"
            return False
        if relay_id != self.relay_id:
            return False

        previous = self.config
        self.config = config
        self.error = None
        self.fetched_at = datetime.now(timezone.utc)
        if config != previous:
            LOGGER.info("Relay config changed: interval=%s rtsp_url set=%s", config.interval, bool(config.rtsp_url))
            if self._on_change is not None:
                self._on_change(config)
        return True
