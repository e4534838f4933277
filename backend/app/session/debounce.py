from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable


class DebouncedDispatcher:
    """Dispatches a value once it has stopped changing for ``quiet_period_seconds``.

    Each ``update`` cancels the pending timer and arms a new one, so only the
    last value of a burst is dispatched. Empty values never dispatch. A value
    equal to the last dispatched one is skipped until ``reset`` is called.

    Dispatches run in their own tasks: a later update does not cancel a
    request that is already in flight, so the latest response to arrive wins.
    """

    def __init__(
        self,
        quiet_period_seconds: float,
        dispatch: Callable[[str], Awaitable[None]],
        logger: logging.Logger | None = None,
    ) -> None:
        self._quiet_period_seconds = max(0.0, quiet_period_seconds)
        self._dispatch = dispatch
        self._logger = logger or logging.getLogger(__name__)
        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._last_dispatched: str | None = None
        self.dispatch_count = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def update(self, value: str) -> None:
        self.cancel()
        if not value:
            return
        self._timer = asyncio.create_task(self._settle(value), name="debounce-timer")

    def flush(self, value: str) -> None:
        """Dispatch ``value`` now, dropping any pending timer."""
        self.cancel()
        if not value or value == self._last_dispatched:
            return
        self._start_dispatch(value)

    def reset(self) -> None:
        self._last_dispatched = None

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def close(self) -> None:
        self.cancel()
        inflight = list(self._inflight)
        for task in inflight:
            task.cancel()
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)
        self._inflight.clear()

    async def _settle(self, value: str) -> None:
        await asyncio.sleep(self._quiet_period_seconds)
        if value == self._last_dispatched:
            return
        self._start_dispatch(value)

    def _start_dispatch(self, value: str) -> None:
        self._last_dispatched = value
        self.dispatch_count += 1
        task = asyncio.create_task(self._run_dispatch(value), name="debounce-dispatch")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_dispatch(self, value: str) -> None:
        try:
            await self._dispatch(value)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover - safety net
            self._logger.error(
                "debounce_dispatch_error",
                extra={
                    "event": "debounce_dispatch_error",
                    "reason": f"{type(exc).__name__}:{exc}",
                },
            )
