from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, Union, cast

from backend.app.recognition.types import (
    RecognitionConfig,
    RecognitionEvent,
    RecognitionStreamEnded,
    RecognitionStreamError,
)

# A scripted item is either an event or the code of an ``error`` event.
ScriptItem = Union[RecognitionEvent, str]


class RecognitionStream(ABC):
    """One run of a recognizer: opened, read until it ends, then closed.

    ``read_event`` raises ``RecognitionStreamError`` for error events and
    ``RecognitionStreamEnded`` when the recognizer stops producing events.
    A stream is not reused after it ends; callers open a new one.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def open(self, config: RecognitionConfig) -> None:
        raise NotImplementedError

    @abstractmethod
    async def read_event(self) -> RecognitionEvent:
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        raise NotImplementedError


class ScriptedRecognitionStream(RecognitionStream):
    """Replays a fixed script; with ``hold_open`` it waits for ``close`` instead of ending."""

    def __init__(
        self,
        items: Iterable[ScriptItem],
        hold_open: bool = False,
        item_interval_seconds: float = 0.0,
        fail_open_with: str | None = None,
        source_name: str = "scripted-recognizer",
    ) -> None:
        self._items = list(items)
        self._hold_open = hold_open
        self._item_interval_seconds = max(0.0, item_interval_seconds)
        self._fail_open_with = fail_open_with
        self._source_name = source_name
        self._position = 0
        self._opened = False
        self._closed = asyncio.Event()
        self.config: RecognitionConfig | None = None

    @property
    def name(self) -> str:
        return self._source_name

    async def open(self, config: RecognitionConfig) -> None:
        if self._fail_open_with is not None:
            raise RecognitionStreamError(self._fail_open_with)
        self.config = config
        self._opened = True

    async def read_event(self) -> RecognitionEvent:
        if not self._opened or self._closed.is_set():
            raise RecognitionStreamEnded("stream is not open")

        if self._position >= len(self._items):
            if self._hold_open:
                await self._closed.wait()
            raise RecognitionStreamEnded("script exhausted")

        if self._item_interval_seconds:
            await asyncio.sleep(self._item_interval_seconds)

        item = self._items[self._position]
        self._position += 1
        if isinstance(item, str):
            raise RecognitionStreamError(item)
        return item

    async def close(self) -> None:
        self._opened = False
        self._closed.set()


class RecognitionChannel:
    """Carries recognizer messages from a remote client into recognition streams.

    ``on_open`` asks the client to start its recognizer with the given
    configuration. Messages pushed while no stream is reading wait in the
    queue; each stream drops anything left over from a previous stream when
    it opens.
    """

    _END = object()

    def __init__(
        self,
        on_open: Callable[[RecognitionConfig], Awaitable[None]],
        maxsize: int = 256,
    ) -> None:
        self._on_open = on_open
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max(1, maxsize))
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push_event(self, event: RecognitionEvent) -> None:
        self._put(event)

    def push_error(self, code: str) -> None:
        self._put(RecognitionStreamError(code))

    def push_end(self) -> None:
        self._put(self._END)

    def close(self) -> None:
        self._closed = True
        self._put(self._END, force=True)

    def drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    async def request_open(self, config: RecognitionConfig) -> None:
        await self._on_open(config)

    async def get(self) -> object:
        return await self._queue.get()

    def is_end(self, item: object) -> bool:
        return item is self._END

    def _put(self, item: object, force: bool = False) -> None:
        if self._closed and not force:
            return
        if self._queue.full():
            # Oldest entries are the least useful: every event repeats the full stream.
            self._queue.get_nowait()
        self._queue.put_nowait(item)


class ChannelRecognitionStream(RecognitionStream):
    def __init__(self, channel: RecognitionChannel, source_name: str = "channel-recognizer") -> None:
        self._channel = channel
        self._source_name = source_name
        self._open = False

    @property
    def name(self) -> str:
        return self._source_name

    async def open(self, config: RecognitionConfig) -> None:
        if self._channel.closed:
            raise RecognitionStreamError("stream-unavailable")
        self._channel.drain()
        await self._channel.request_open(config)
        self._open = True

    async def read_event(self) -> RecognitionEvent:
        if not self._open:
            raise RecognitionStreamEnded("stream is not open")

        item = await self._channel.get()
        if self._channel.is_end(item):
            self._open = False
            raise RecognitionStreamEnded("recognizer ended")
        if isinstance(item, RecognitionStreamError):
            raise item
        return cast(RecognitionEvent, item)

    async def close(self) -> None:
        self._open = False
