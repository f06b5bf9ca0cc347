"""Pairing state machine: unpaired relay -> claimed pairing code -> paired relay."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Final
import asyncio
import logging

from coop_relay.backend import (
    BackendClient,
    BackendError,
    BackendHTTPError,
    PairingStatus,
)
from coop_relay.db import COOP_ID, PAIRING_CODE, RELAY_ID, RTSP_OVERRIDE, IdentityStore

from .timers import TaskRegistry


LOGGER = logging.getLogger(__name__)
PAIRING_POLL_TASK: Final[str] = "pairing_poll"


class PairingState(str, Enum):
    INITIALIZING = "initializing"
    UNPAIRED = "unpaired"
    PAIRING_IN_PROGRESS = "pairing_in_progress"
    PAIRED = "paired"


class PairingStateMachine:
    """Owns relay identity transitions.

    The store is written through on every change; `relay_id` and
    `pairing_code` mirror it in memory so a late poll response can be
    recognised as stale without another read.

    Startup policy: when a stored pairing code cannot be checked for any
    backend reason, a relay that already has a relay id is treated as
    paired. The code stays stored, so the next start checks it again.
    """

    def __init__(
        self,
        client: BackendClient,
        store: IdentityStore,
        timers: TaskRegistry,
        poll_seconds: float = 5.0,
        on_paired: Callable[[str], None] | None = None,
        on_unpaired: Callable[[], None] | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._timers = timers
        self.poll_seconds = poll_seconds
        self._on_paired = on_paired
        self._on_unpaired = on_unpaired
        self.state = PairingState.INITIALIZING
        self.message = "Starting up..."
        self.relay_id: str | None = None
        self.pairing_code: str | None = None
        self.coop_id: str | None = None

    @property
    def is_paired(self) -> bool:
        return self.state is PairingState.PAIRED

    @property
    def is_polling(self) -> bool:
        return self._timers.is_armed(PAIRING_POLL_TASK)

    async def initialize(self) -> PairingState:
        identity = await asyncio.to_thread(self._store.load)
        self.relay_id = identity.relay_id
        self.pairing_code = identity.pairing_code
        self.coop_id = identity.coop_id

        if not self.relay_id:
            # A code without a relay id cannot be completed; start over.
            self.pairing_code = None
            self.state = PairingState.UNPAIRED
            await self.request_pairing_code()
            return self.state

        if not self.pairing_code:
            self._mark_paired("Relay is paired.")
            return self.state

        try:
            status = await asyncio.to_thread(self._client.get_pairing_status, self.pairing_code)
        except BackendError as exc:
            LOGGER.warning("Could not confirm pairing at startup, assuming paired: %s", exc)
            self._mark_paired("Pairing check failed; assuming the relay is still paired.")
            return self.state

        if status.is_claimed:
            await self._complete_claim(status)
        else:
            self._enter_unpaired(f"Ready to pair. Enter code {self.pairing_code} in the Coop app.")
        return self.state

    async def request_pairing_code(self) -> bool:
        """Ask the backend for a fresh code; failures leave the relay unpaired without retrying."""
        if self.is_paired:
            self.message = "Relay is already paired; reset pairing to get a new code."
            return False
        try:
            grant = await asyncio.to_thread(self._client.request_pairing_code, self.relay_id)
        except BackendError as exc:
            LOGGER.warning("Pairing code request failed: %s", exc)
            self.state = PairingState.UNPAIRED
            self.message = f"Pairing request failed: {exc}"
            return False
        await self._persist({RELAY_ID: grant.relay_id, PAIRING_CODE: grant.pairing_code})
        self.relay_id = grant.relay_id
        self.pairing_code = grant.pairing_code
        self._enter_unpaired(f"Ready to pair. Enter code {grant.pairing_code} in the Coop app.")
        return True

    async def reset(self) -> bool:
        """Issue a new code for an already known relay id and go back to unpaired."""
        if not self.relay_id:
            self.message = "Cannot reset pairing: this relay has never been paired."
            LOGGER.warning(self.message)
            return False
        try:
            grant = await asyncio.to_thread(self._client.request_pairing_code, self.relay_id)
        except BackendError as exc:
            LOGGER.warning("Pairing reset failed: %s", exc)
            self.message = f"Pairing reset failed: {exc}"
            return False

        await self._persist(
            {
                RELAY_ID: grant.relay_id,
                PAIRING_CODE: grant.pairing_code,
                COOP_ID: None,
                RTSP_OVERRIDE: None,
            }
        )
        self.relay_id = grant.relay_id
        self.pairing_code = grant.pairing_code
        self.coop_id = None
        self._enter_unpaired(f"Pairing reset. Enter code {grant.pairing_code} in the Coop app.")
        if self._on_unpaired is not None:
            self._on_unpaired()
        return True

    def start_polling(self) -> None:
        if self.pairing_code and not self.is_paired:
            self._timers.arm(PAIRING_POLL_TASK, self._poll_loop())

    def stop_polling(self) -> None:
        self._timers.cancel(PAIRING_POLL_TASK)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_seconds)
            try:
                if await self.poll_once():
                    return
            except Exception as exc:
                LOGGER.exception("Pairing poll iteration failed: %s", exc)

    async def poll_once(self) -> bool:
        """Check the current code once. Returns True when polling should stop."""
        code = self.pairing_code
        if self.is_paired or not code:
            return True
        self.state = PairingState.PAIRING_IN_PROGRESS

        try:
            status = await asyncio.to_thread(self._client.get_pairing_status, code)
        except BackendHTTPError as exc:
            if exc.status_code == 404:
                self.message = f"Pairing code {code} not found, retrying..."
            else:
                self.message = f"Pairing check failed (HTTP {exc.status_code}), retrying..."
            LOGGER.info("Pairing poll for %s: %s", code, exc)
            return False
        except BackendError as exc:
            self.message = f"Pairing check failed: {exc}. Retrying..."
            LOGGER.info("Pairing poll for %s: %s", code, exc)
            return False

        if self.is_paired or self.pairing_code != code:
            # Response belongs to a code that is no longer current.
            return True

        if status.status == "claimed":
            if status.relay_id:
                await self._complete_claim(status)
                return True
            self.message = "Code claimed but no relay id returned, retrying..."
            return False
        if status.status == "pending":
            self.message = f"Waiting for code {code} to be claimed..."
            return False
        self.message = f"Unknown pairing status {status.status!r}, retrying..."
        return False

    async def _persist(self, values: dict[str, str | None]) -> None:
        await asyncio.to_thread(self._store.update, values)

    async def _complete_claim(self, status: PairingStatus) -> None:
        values: dict[str, str | None] = {RELAY_ID: status.relay_id, PAIRING_CODE: None}
        if status.coop_id:
            values[COOP_ID] = status.coop_id
        await self._persist(values)
        self.relay_id = status.relay_id
        self.pairing_code = None
        if status.coop_id:
            self.coop_id = status.coop_id
        LOGGER.info("Relay %s claimed", self.relay_id)
        self._mark_paired("Relay paired successfully.")

    def _mark_paired(self, message: str) -> None:
        self.stop_polling()
        self.state = PairingState.PAIRED
        self.message = message
        if self._on_paired is not None and self.relay_id:
            self._on_paired(self.relay_id)

    def _enter_unpaired(self, message: str) -> None:
        self.state = PairingState.UNPAIRED
        self.message = message
        self.start_polling()
