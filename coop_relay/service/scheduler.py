"""Periodic and on-demand capture -> upload -> notify cycles."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Final
import asyncio
import logging

from coop_relay.backend import BackendClient, BackendError, RelayConfig
from coop_relay.camera import CameraModuleError, CaptureExecutor, redact_credentials
from coop_relay.storage import UploaderExecutor, UploadModuleError

from .intervals import parse_interval_seconds
from .status import StatusMonitor
from .timers import TaskRegistry


LOGGER = logging.getLogger(__name__)
SNAPSHOT_TASK: Final[str] = "snapshot_timer"
COUNTDOWN_TASK: Final[str] = "countdown"


@dataclass(frozen=True)
class CycleResult:
    ok: bool
    message: str
    trigger: str
    image_path: str | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SnapshotScheduler:
    """Turns the current interval and stream address into capture cycles.

    Cycles run one at a time behind `_cycle_lock`; a manual capture that
    arrives during a timed one waits for it, so both never write the
    shared output file at once.
    """

    def __init__(
        self,
        client: BackendClient,
        capture: CaptureExecutor,
        uploader: UploaderExecutor,
        status: StatusMonitor,
        timers: TaskRegistry,
        output_path: str,
    ) -> None:
        self._client = client
        self._capture = capture
        self._uploader = uploader
        self._status = status
        self._timers = timers
        self.output_path = output_path
        self.relay_id: str | None = None
        self.config = RelayConfig()
        self.rtsp_override: str | None = None
        self.interval_seconds = 0
        self._countdown = 0
        self.message = "Waiting for pairing."
        self.last_result: CycleResult | None = None
        self._cycle_lock = asyncio.Lock()
        self._in_flight: set[asyncio.Future[CycleResult]] = set()

    @property
    def effective_rtsp_url(self) -> str | None:
        return self.rtsp_override or self.config.rtsp_url or None

    @property
    def countdown(self) -> int:
        return max(0, min(self._countdown, self.interval_seconds))

    @property
    def is_armed(self) -> bool:
        return self._timers.is_armed(SNAPSHOT_TASK)

    def set_config(self, config: RelayConfig) -> None:
        changed = (config.interval, config.rtsp_url) != (self.config.interval, self.config.rtsp_url)
        self.config = config
        if changed:
            self.rearm()

    def set_rtsp_override(self, rtsp_url: str | None) -> None:
        rtsp_url = rtsp_url or None
        if rtsp_url == self.rtsp_override:
            return
        self.rtsp_override = rtsp_url
        self.rearm()

    def rearm(self) -> bool:
        """Cancel both timers, then arm them again if interval and stream allow."""
        self._cancel_timers()
        interval_seconds = parse_interval_seconds(self.config.interval)
        stream_url = self.effective_rtsp_url
        if interval_seconds <= 0:
            self.interval_seconds = 0
            self._countdown = 0
            self.message = f"No capture interval configured (got {self.config.interval!r})."
            return False
        if not stream_url:
            self.interval_seconds = 0
            self._countdown = 0
            self.message = "No stream address configured; set an RTSP URL."
            return False

        self.interval_seconds = interval_seconds
        self._countdown = interval_seconds
        self._timers.arm(SNAPSHOT_TASK, self._timer_loop(interval_seconds))
        self._timers.arm(COUNTDOWN_TASK, self._countdown_loop())
        self.message = f"Capturing every {self.config.interval} from {redact_credentials(stream_url)}."
        LOGGER.info(self.message)
        return True

    def stop(self) -> None:
        self._cancel_timers()
        self.config = RelayConfig()
        self.rtsp_override = None
        self.interval_seconds = 0
        self._countdown = 0
        self.message = "Waiting for pairing."

    def _cancel_timers(self) -> None:
        self._timers.cancel(SNAPSHOT_TASK)
        self._timers.cancel(COUNTDOWN_TASK)

    async def _timer_loop(self, interval_seconds: int) -> None:
        """Fire at a fixed rate; ticks missed while a long cycle runs are skipped."""
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + interval_seconds
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            self._countdown = interval_seconds
            cycle = asyncio.ensure_future(self.run_cycle(trigger="timer"))
            self._in_flight.add(cycle)
            cycle.add_done_callback(self._in_flight.discard)
            # Re-arming cancels this loop but not a cycle already running.
            await asyncio.shield(cycle)
            now = loop.time()
            next_fire += interval_seconds
            while next_fire <= now:
                next_fire += interval_seconds
            self._countdown = max(0, round(next_fire - now))

    async def _countdown_loop(self) -> None:
        while True:
            await asyncio.sleep(1)
            self.tick()

    def tick(self) -> None:
        self._countdown = max(0, self._countdown - 1)

    async def run_cycle(self, trigger: str = "manual") -> CycleResult:
        async with self._cycle_lock:
            try:
                result = await self._cycle(trigger)
            except Exception as exc:
                LOGGER.exception("Capture cycle failed unexpectedly: %s", exc)
                result = CycleResult(False, f"Unexpected capture error: {exc}", trigger)
        self.last_result = result
        if result.ok:
            LOGGER.info("%s capture: %s", trigger, result.message)
        else:
            LOGGER.warning("%s capture: %s", trigger, result.message)
        return result

    async def _cycle(self, trigger: str) -> CycleResult:
        relay_id = self.relay_id
        if not relay_id:
            return CycleResult(False, "No relay id; pair this relay first.", trigger)

        try:
            self._uploader.check_prerequisites()
        except UploadModuleError as exc:
            return CycleResult(False, f"Upload not configured: {exc}", trigger)

        stream_url = self.effective_rtsp_url
        if not stream_url:
            return CycleResult(False, "No stream address configured; set an RTSP URL.", trigger)

        try:
            await asyncio.to_thread(self._capture.capture, stream_url, self.output_path)
        except CameraModuleError as exc:
            return CycleResult(False, f"Capture failed: {exc}", trigger)

        try:
            upload = await asyncio.to_thread(self._uploader.upload, relay_id, self.output_path)
        except UploadModuleError as exc:
            return CycleResult(False, f"Upload failed: {exc}", trigger)
        if not upload.from_marker:
            LOGGER.warning("Uploader printed no path marker; using %s", upload.image_path)

        await self._notify(upload.image_path)
        await self._status.refresh(relay_id)
        return CycleResult(True, f"Snapshot uploaded: {upload.image_path}", trigger, upload.image_path)

    async def _notify(self, image_path: str) -> None:
        try:
            await asyncio.to_thread(self._client.notify_snapshot_created, image_path)
        except BackendError as exc:
            LOGGER.warning("Snapshot notification for %s failed: %s", image_path, exc)
