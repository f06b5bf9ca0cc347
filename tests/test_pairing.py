from __future__ import annotations

import asyncio
import threading
import unittest
from unittest.mock import MagicMock, patch

from coop_relay.backend import (
    BackendClient,
    BackendHTTPError,
    BackendTransportError,
    PairingCodeGrant,
    PairingStatus,
)
from coop_relay.db import COOP_ID, PAIRING_CODE, RELAY_ID, RTSP_OVERRIDE
from coop_relay.service.pairing import PairingState, PairingStateMachine
from coop_relay.service.timers import TaskRegistry

from tests.support import memory_store


class PairingStateMachineTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = memory_store()
        self.client = MagicMock(spec=BackendClient)
        self.timers = TaskRegistry()
        self.paired: list[str] = []
        self.unpaired_calls = 0
        self.machine = PairingStateMachine(
            self.client,
            self.store,
            self.timers,
            poll_seconds=0.01,
            on_paired=self.paired.append,
            on_unpaired=self._on_unpaired,
        )

    async def asyncTearDown(self) -> None:
        await self.timers.cancel_all()

    def _on_unpaired(self) -> None:
        self.unpaired_calls += 1

    async def _wait_until(self, predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                self.fail("condition not reached in time")
            await asyncio.sleep(0.01)

    async def test_pending_then_claimed_scenario(self) -> None:
        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")

        await self.machine.initialize()

        self.assertEqual(self.machine.state, PairingState.UNPAIRED)
        self.assertEqual(self.store.pairing_code, "12345678")
        self.assertEqual(self.store.relay_id, "r-1")
        self.assertTrue(self.machine.is_polling)
        self.client.request_pairing_code.assert_called_once_with(None)
        self.machine.stop_polling()

        self.client.get_pairing_status.return_value = PairingStatus("pending")
        self.assertFalse(await self.machine.poll_once())
        self.assertEqual(self.machine.state, PairingState.PAIRING_IN_PROGRESS)
        self.assertEqual(self.store.pairing_code, "12345678")
        self.client.get_pairing_status.assert_called_with("12345678")

        self.client.get_pairing_status.return_value = PairingStatus("claimed", relay_id="r-1")
        self.assertTrue(await self.machine.poll_once())
        self.assertEqual(self.machine.state, PairingState.PAIRED)
        self.assertIsNone(self.store.pairing_code)
        self.assertIsNone(self.machine.pairing_code)
        self.assertEqual(self.paired, ["r-1"])

    async def test_claim_requires_relay_id(self) -> None:
        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")
        await self.machine.initialize()
        self.machine.stop_polling()
        self.client.get_pairing_status.return_value = PairingStatus("claimed", relay_id=None)

        self.assertFalse(await self.machine.poll_once())

        self.assertEqual(self.machine.state, PairingState.PAIRING_IN_PROGRESS)
        self.assertEqual(self.store.pairing_code, "12345678")
        self.assertEqual(self.paired, [])

    async def test_http_errors_keep_polling(self) -> None:
        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")
        await self.machine.initialize()
        self.machine.stop_polling()

        self.client.get_pairing_status.side_effect = BackendHTTPError(404, "not found")
        self.assertFalse(await self.machine.poll_once())
        self.assertIn("not found", self.machine.message)

        self.client.get_pairing_status.side_effect = BackendHTTPError(500, "boom")
        self.assertFalse(await self.machine.poll_once())
        self.assertIn("HTTP 500", self.machine.message)

        self.client.get_pairing_status.side_effect = BackendTransportError("refused")
        self.assertFalse(await self.machine.poll_once())
        self.assertEqual(self.machine.state, PairingState.PAIRING_IN_PROGRESS)

    async def test_unknown_status(self) -> None:
        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")
        await self.machine.initialize()
        self.machine.stop_polling()
        self.client.get_pairing_status.return_value = PairingStatus("revoked")

        self.assertFalse(await self.machine.poll_once())

        self.assertIn("Unknown pairing status", self.machine.message)

    async def test_polling_stops_after_claim(self) -> None:
        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")
        self.client.get_pairing_status.side_effect = [
            PairingStatus("pending"),
            PairingStatus("claimed", relay_id="r-1", coop_id="c-1"),
            PairingStatus("claimed", relay_id="r-1", coop_id="c-1"),
        ]

        await self.machine.initialize()
        await self._wait_until(lambda: self.machine.is_paired)
        await asyncio.sleep(0.1)

        self.assertEqual(self.client.get_pairing_status.call_count, 2)
        self.assertFalse(self.machine.is_polling)
        self.assertEqual(self.paired, ["r-1"])
        self.assertEqual(self.store.get(COOP_ID), "c-1")

    async def test_response_for_replaced_code_is_ignored(self) -> None:
        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")
        await self.machine.initialize()
        self.machine.stop_polling()

        def replace_code(code: str) -> PairingStatus:
            self.machine.pairing_code = "99999999"
            return PairingStatus("claimed", relay_id="r-1")

        self.client.get_pairing_status.side_effect = replace_code

        self.assertTrue(await self.machine.poll_once())
        self.assertNotEqual(self.machine.state, PairingState.PAIRED)
        self.assertEqual(self.paired, [])

    async def test_initialize_with_relay_id_only_is_paired(self) -> None:
        self.store.set(RELAY_ID, "r-1")

        state = await self.machine.initialize()

        self.assertEqual(state, PairingState.PAIRED)
        self.client.get_pairing_status.assert_not_called()
        self.client.request_pairing_code.assert_not_called()
        self.assertEqual(self.paired, ["r-1"])

    async def test_initialize_with_claimed_code(self) -> None:
        self.store.set(RELAY_ID, "r-1")
        self.store.set(PAIRING_CODE, "12345678")
        self.client.get_pairing_status.return_value = PairingStatus("claimed", relay_id="r-1")

        state = await self.machine.initialize()

        self.assertEqual(state, PairingState.PAIRED)
        self.assertIsNone(self.store.pairing_code)
        self.assertFalse(self.machine.is_polling)

    async def test_initialize_with_pending_code_polls(self) -> None:
        self.store.set(RELAY_ID, "r-1")
        self.store.set(PAIRING_CODE, "12345678")
        self.client.get_pairing_status.return_value = PairingStatus("pending")

        state = await self.machine.initialize()

        self.assertEqual(state, PairingState.UNPAIRED)
        self.assertTrue(self.machine.is_polling)
        self.assertEqual(self.paired, [])

    async def test_initialize_fails_open_when_backend_unreachable(self) -> None:
        self.store.set(RELAY_ID, "r-1")
        self.store.set(PAIRING_CODE, "12345678")
        self.client.get_pairing_status.side_effect = BackendTransportError("unreachable")

        state = await self.machine.initialize()

        self.assertEqual(state, PairingState.PAIRED)
        self.assertEqual(self.paired, ["r-1"])
        self.assertEqual(self.store.pairing_code, "12345678")

    async def test_initialize_fails_open_on_backend_http_errors(self) -> None:
        for error in (BackendHTTPError(503, "unavailable"), BackendHTTPError(404, "not found")):
            with self.subTest(status_code=error.status_code):
                store = memory_store(namespace=f"fail-open-{error.status_code}")
                store.set(RELAY_ID, "r-1")
                store.set(PAIRING_CODE, "12345678")
                client = MagicMock(spec=BackendClient)
                client.get_pairing_status.side_effect = error
                timers = TaskRegistry()
                machine = PairingStateMachine(client, store, timers, poll_seconds=0.01)

                state = await machine.initialize()

                self.assertEqual(state, PairingState.PAIRED)
                self.assertFalse(machine.is_polling)
                self.assertEqual(store.pairing_code, "12345678")
                await timers.cancel_all()

    async def test_stored_code_without_relay_id_requests_fresh_code(self) -> None:
        self.store.set(PAIRING_CODE, "11111111")
        self.client.request_pairing_code.return_value = PairingCodeGrant("22222222", "r-9")

        state = await self.machine.initialize()

        self.assertEqual(state, PairingState.UNPAIRED)
        self.client.get_pairing_status.assert_not_called()
        self.client.request_pairing_code.assert_called_once_with(None)
        self.assertEqual(self.store.pairing_code, "22222222")
        self.assertEqual(self.store.relay_id, "r-9")

    async def test_store_access_runs_off_the_event_loop_thread(self) -> None:
        loop_thread = threading.get_ident()
        store_threads: list[int] = []
        original_update = self.store.update
        original_load = self.store.load

        def tracked_update(values):
            store_threads.append(threading.get_ident())
            return original_update(values)

        def tracked_load():
            store_threads.append(threading.get_ident())
            return original_load()

        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")
        with patch.object(self.store, "update", side_effect=tracked_update), patch.object(
            self.store, "load", side_effect=tracked_load
        ):
            await self.machine.initialize()

        self.assertEqual(len(store_threads), 2)
        self.assertNotIn(loop_thread, store_threads)
        self.assertEqual(self.store.pairing_code, "12345678")

    async def test_request_failure_stays_unpaired_without_retry(self) -> None:
        self.client.request_pairing_code.side_effect = BackendHTTPError(503, "busy")

        state = await self.machine.initialize()

        self.assertEqual(state, PairingState.UNPAIRED)
        self.assertIn("Pairing request failed", self.machine.message)
        self.assertFalse(self.machine.is_polling)
        self.assertIsNone(self.store.pairing_code)

        self.client.request_pairing_code.side_effect = None
        self.client.request_pairing_code.return_value = PairingCodeGrant("12345678", "r-1")
        self.assertTrue(await self.machine.request_pairing_code())
        self.assertTrue(self.machine.is_polling)

    async def test_reset_without_relay_id_is_rejected(self) -> None:
        before = self.machine.state

        self.assertFalse(await self.machine.reset())

        self.assertEqual(self.machine.state, before)
        self.assertIn("never been paired", self.machine.message)
        self.client.request_pairing_code.assert_not_called()
        self.assertEqual(self.unpaired_calls, 0)

    async def test_reset_of_paired_relay(self) -> None:
        self.store.set(RELAY_ID, "r-1")
        self.store.set(COOP_ID, "c-1")
        self.store.set(RTSP_OVERRIDE, "rtsp://local/cam")
        await self.machine.initialize()
        self.client.request_pairing_code.return_value = PairingCodeGrant("55555555", "r-1")

        self.assertTrue(await self.machine.reset())

        self.client.request_pairing_code.assert_called_once_with("r-1")
        self.assertEqual(self.machine.state, PairingState.UNPAIRED)
        self.assertEqual(self.store.pairing_code, "55555555")
        self.assertEqual(self.store.relay_id, "r-1")
        self.assertIsNone(self.store.rtsp_override)
        self.assertIsNone(self.store.get(COOP_ID))
        self.assertTrue(self.machine.is_polling)
        self.assertEqual(self.unpaired_calls, 1)

    async def test_reset_request_failure_keeps_state(self) -> None:
        self.store.set(RELAY_ID, "r-1")
        await self.machine.initialize()
        self.client.request_pairing_code.side_effect = BackendTransportError("down")

        self.assertFalse(await self.machine.reset())

        self.assertEqual(self.machine.state, PairingState.PAIRED)
        self.assertIn("Pairing reset failed", self.machine.message)
        self.assertEqual(self.unpaired_calls, 0)


if __name__ == "__main__":
    unittest.main()
