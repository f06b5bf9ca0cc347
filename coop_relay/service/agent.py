"""The relay agent: one owned object wiring pairing, config, capture and health."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Final
import asyncio
import logging

from coop_relay.backend import BackendClient, RelayConfig
from coop_relay.camera import CaptureExecutor, redact_credentials
from coop_relay.config import AppSettings
from coop_relay.db import (
    RTSP_OVERRIDE,
    IdentityStore,
    create_session_factory,
    get_engine,
    init_schema,
)
from coop_relay.storage import UploaderExecutor

from .config_poller import ConfigPoller
from .health import HealthReporter
from .pairing import PairingState, PairingStateMachine
from .scheduler import CycleResult, SnapshotScheduler
from .status import StatusMonitor
from .timers import TaskRegistry


LOGGER = logging.getLogger(__name__)
STATUS_REFRESH_TASK: Final[str] = "status_refresh"


class RelayAgent:
    """Constructed once per process and handed to whoever needs relay state."""

    def __init__(
        self,
        store: IdentityStore,
        client: BackendClient,
        capture: CaptureExecutor,
        uploader: UploaderExecutor,
        *,
        capture_output_path: str,
        pairing_poll_seconds: float = 5.0,
        config_poll_seconds: float = 30.0,
        health_interval_seconds: float = 120.0,
        timers: TaskRegistry | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.timers = timers or TaskRegistry()
        self.status = StatusMonitor(client)
        self.pairing = PairingStateMachine(
            client,
            store,
            self.timers,
            poll_seconds=pairing_poll_seconds,
            on_paired=self._enter_paired,
            on_unpaired=self._leave_paired,
        )
        self.config_poller = ConfigPoller(
            client,
            self.timers,
            base_seconds=config_poll_seconds,
            on_change=self._on_config_change,
        )
        self.scheduler = SnapshotScheduler(
            client,
            capture,
            uploader,
            self.status,
            self.timers,
            output_path=capture_output_path,
        )
        self.health = HealthReporter(client, self.timers, interval_seconds=health_interval_seconds)
        self._started = False

    @property
    def state(self) -> PairingState:
        return self.pairing.state

    @property
    def config(self) -> RelayConfig:
        return self.config_poller.config

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.scheduler.rtsp_override = await asyncio.to_thread(self.store.get, RTSP_OVERRIDE)
        state = await self.pairing.initialize()
        LOGGER.info("Relay agent started in state %s", state.value)

    async def stop(self) -> None:
        await self.timers.cancel_all()
        self._started = False
        LOGGER.info("Relay agent stopped")

    async def request_pairing_code(self) -> bool:
        return await self.pairing.request_pairing_code()

    async def reset_pairing(self) -> bool:
        return await self.pairing.reset()

    async def capture_now(self) -> CycleResult:
        return await self.scheduler.run_cycle(trigger="manual")

    async def set_rtsp_override(self, rtsp_url: str | None) -> None:
        rtsp_url = (rtsp_url or "").strip() or None
        await asyncio.to_thread(self.store.set, RTSP_OVERRIDE, rtsp_url)
        if self.pairing.is_paired:
            self.scheduler.set_rtsp_override(rtsp_url)
        else:
            self.scheduler.rtsp_override = rtsp_url

    def _enter_paired(self, relay_id: str) -> None:
        LOGGER.info("Relay %s is paired; starting config, health and status", relay_id)
        self.scheduler.relay_id = relay_id
        self.config_poller.start(relay_id)
        self.health.start(relay_id)
        self.timers.arm(STATUS_REFRESH_TASK, self.status.refresh(relay_id))

    def _leave_paired(self) -> None:
        LOGGER.info("Relay left paired state; stopping config, health and capture timers")
        self.config_poller.stop()
        self.health.stop()
        self.scheduler.stop()
        self.timers.cancel(STATUS_REFRESH_TASK)
        self.status.clear()

    def _on_config_change(self, config: RelayConfig) -> None:
        self.scheduler.set_config(config)

    def state_snapshot(self) -> dict[str, Any]:
        """Plain-data view of everything an operator surface may show."""
        effective = self.scheduler.effective_rtsp_url
        override = self.scheduler.rtsp_override
        last = self.scheduler.last_result
        return {
            "state": self.pairing.state.value,
            "message": self.pairing.message,
            "relay_id": self.pairing.relay_id,
            "pairing_code": self.pairing.pairing_code,
            "coop_id": self.pairing.coop_id,
            "config": asdict(self.config_poller.config),
            "config_error": self.config_poller.error,
            "rtsp_override": redact_credentials(override) if override else None,
            "effective_rtsp_url": redact_credentials(effective) if effective else None,
            "interval_seconds": self.scheduler.interval_seconds,
            "countdown": self.scheduler.countdown,
            "scheduler_message": self.scheduler.message,
            "status": asdict(self.status.status),
            "last_heartbeat_at": _isoformat(self.health.last_ok_at),
            "last_cycle": None
            if last is None
            else {
                "ok": last.ok,
                "message": last.message,
                "trigger": last.trigger,
                "image_path": last.image_path,
                "finished_at": last.finished_at.isoformat(),
            },
            "timers": self.timers.names(),
        }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def build_agent(settings: AppSettings) -> RelayAgent:
    """Wire the production collaborators from settings."""
    engine = get_engine(settings.database_url)
    init_schema(engine)
    store = IdentityStore(create_session_factory(engine), namespace=settings.store_namespace)
    client = BackendClient(settings.backend_url, timeout_sec=settings.http_timeout_seconds)
    capture = CaptureExecutor(
        ffmpeg_bin=settings.ffmpeg_bin,
        timeout_sec=settings.capture_timeout_seconds,
    )
    uploader = UploaderExecutor(
        settings.uploader_command,
        timeout_sec=settings.upload_timeout_seconds,
        required_env=settings.uploader_required_env,
        extra_env={"COOP_BACKEND_URL": settings.backend_url},
    )
    return RelayAgent(
        store,
        client,
        capture,
        uploader,
        capture_output_path=settings.capture_output_path,
        pairing_poll_seconds=settings.pairing_poll_seconds,
        config_poll_seconds=settings.config_poll_seconds,
        health_interval_seconds=settings.health_interval_seconds,
    )
