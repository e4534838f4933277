from __future__ import annotations

import asyncio
import unittest

from backend.app.session.debounce import DebouncedDispatcher


class DebouncedDispatcherTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.dispatched: list[str] = []

    async def _record(self, value: str) -> None:
        self.dispatched.append(value)

    async def test_burst_is_coalesced_to_latest_value(self) -> None:
        dispatcher = DebouncedDispatcher(quiet_period_seconds=0.3, dispatch=self._record)

        dispatcher.update("the")
        await asyncio.sleep(0.05)
        dispatcher.update("the patient")
        await asyncio.sleep(0.05)
        dispatcher.update("the patient has a fever")
        await asyncio.sleep(0.6)

        self.assertEqual(self.dispatched, ["the patient has a fever"])
        self.assertEqual(dispatcher.dispatch_count, 1)
        await dispatcher.close()

    async def test_nothing_dispatches_before_quiet_period(self) -> None:
        dispatcher = DebouncedDispatcher(quiet_period_seconds=0.3, dispatch=self._record)

        dispatcher.update("hello")
        await asyncio.sleep(0.1)
        self.assertTrue(dispatcher.pending)
        self.assertEqual(self.dispatched, [])
        await dispatcher.close()
        self.assertFalse(dispatcher.pending)

    async def test_empty_value_never_dispatches(self) -> None:
        dispatcher = DebouncedDispatcher(quiet_period_seconds=0.05, dispatch=self._record)

        dispatcher.update("")
        await asyncio.sleep(0.2)
        self.assertEqual(self.dispatched, [])

        dispatcher.update("hello")
        dispatcher.update("")
        await asyncio.sleep(0.2)
        self.assertEqual(self.dispatched, [])
        await dispatcher.close()

    async def test_same_settled_value_is_not_dispatched_twice(self) -> None:
        dispatcher = DebouncedDispatcher(quiet_period_seconds=0.05, dispatch=self._record)

        dispatcher.update("hello")
        await asyncio.sleep(0.15)
        dispatcher.update("hello")
        await asyncio.sleep(0.15)
        self.assertEqual(self.dispatched, ["hello"])

        dispatcher.reset()
        dispatcher.update("hello")
        await asyncio.sleep(0.15)
        self.assertEqual(self.dispatched, ["hello", "hello"])
        await dispatcher.close()

    async def test_flush_dispatches_without_waiting(self) -> None:
        dispatcher = DebouncedDispatcher(quiet_period_seconds=1.0, dispatch=self._record)

        dispatcher.update("chest pain")
        dispatcher.flush("chest pain")
        self.assertFalse(dispatcher.pending)
        await asyncio.sleep(0.05)
        self.assertEqual(self.dispatched, ["chest pain"])

        dispatcher.flush("chest pain")
        dispatcher.flush("")
        await asyncio.sleep(0.05)
        self.assertEqual(self.dispatched, ["chest pain"])
        self.assertEqual(dispatcher.dispatch_count, 1)
        await dispatcher.close()

    async def test_new_update_does_not_cancel_in_flight_dispatch(self) -> None:
        started = asyncio.Event()
        finished: list[str] = []

        async def slow_dispatch(value: str) -> None:
            started.set()
            await asyncio.sleep(0.2)
            finished.append(value)

        dispatcher = DebouncedDispatcher(quiet_period_seconds=0.02, dispatch=slow_dispatch)
        dispatcher.update("first")
        await asyncio.wait_for(started.wait(), timeout=1.0)
        self.assertEqual(dispatcher.inflight_count, 1)

        dispatcher.update("second")
        await asyncio.sleep(0.5)

        self.assertEqual(finished, ["first", "second"])
        await dispatcher.close()

    async def test_close_cancels_in_flight_dispatch(self) -> None:
        finished: list[str] = []

        async def slow_dispatch(value: str) -> None:
            await asyncio.sleep(1.0)
            finished.append(value)

        dispatcher = DebouncedDispatcher(quiet_period_seconds=0.01, dispatch=slow_dispatch)
        dispatcher.update("hello")
        await asyncio.sleep(0.1)
        await dispatcher.close()

        self.assertEqual(dispatcher.inflight_count, 0)
        self.assertEqual(finished, [])


if __name__ == "__main__":
    unittest.main()
