from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from backend.app.recognition.streams import ChannelRecognitionStream, RecognitionChannel
from backend.app.recognition.types import RecognitionConfig
from backend.app.session.coordinator import LiveTranslationSession
from backend.app.settings import Settings
from backend.app.speech.output import SpeechOutput
from backend.app.translation.gateway import TranslationGateway


@dataclass
class SessionManagerMetrics:
    started_at: str | None = None
    running: bool = False
    connected_clients: int = 0
    total_clients_seen: int = 0
    events_emitted: int = 0
    events_dropped: int = 0
    last_event_at: str | None = None
    last_error: str | None = None
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass
class ClientSession:
    client_id: int
    client_key: str
    websocket: WebSocket
    queue: asyncio.Queue[dict[str, Any]]
    channel: RecognitionChannel
    session: LiveTranslationSession | None = None
    sender_task: asyncio.Task[None] | None = None


class SessionManager:
    """One live translation session per connected WebSocket client."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        gateway: TranslationGateway,
        speech_output: SpeechOutput | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._gateway = gateway
        self._speech_output = speech_output
        self._metrics = SessionManagerMetrics()
        self._clients: dict[int, ClientSession] = {}
        self._client_id_counter = 0
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._lock:
            self._metrics.started_at = datetime.now(timezone.utc).isoformat()
            self._metrics.running = True
            self._metrics.last_error = None

    async def stop(self) -> None:
        for client_id in list(self._clients.keys()):
            await self.disconnect(client_id)

        async with self._lock:
            self._metrics.running = False
            self._metrics.connected_clients = 0

    async def connect(self, websocket: WebSocket, client_key: str) -> ClientSession:
        await websocket.accept()

        self._client_id_counter += 1
        client_id = self._client_id_counter
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(
            maxsize=max(1, self._settings.session_client_queue_maxsize)
        )

        async def publish(event_type: str, payload: dict[str, Any]) -> None:
            await self.publish(client_id, event_type, payload)

        async def request_open(config: RecognitionConfig) -> None:
            await publish("recognition.open", config.to_dict())

        channel = RecognitionChannel(on_open=request_open)
        client = ClientSession(
            client_id=client_id,
            client_key=client_key,
            websocket=websocket,
            queue=queue,
            channel=channel,
        )
        client.session = LiveTranslationSession(
            settings=self._settings,
            logger=self._logger,
            gateway=self._gateway,
            stream_factory=lambda: ChannelRecognitionStream(
                channel, source_name=f"client-{client_id}-recognizer"
            ),
            publish=publish,
            client_key=client_key,
            speech_output=self._speech_output,
        )

        async with self._lock:
            self._clients[client_id] = client
            self._metrics.connected_clients = len(self._clients)
            self._metrics.total_clients_seen += 1

        client.sender_task = asyncio.create_task(
            self._sender_loop(client),
            name=f"session-client-sender-{client_id}",
        )
        self._logger.info(
            "session_client_connected",
            extra={
                "event": "session_client_connected",
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                "client_id": client_id,
                "client_key": client_key,
            },
        )
        return client

    async def disconnect(self, client_id: int) -> None:
        async with self._lock:
            client = self._clients.pop(client_id, None)
            self._metrics.connected_clients = len(self._clients)

        if client is None:
            return

        client.channel.close()
        if client.session is not None:
            await client.session.close()

        if client.sender_task is not None and client.sender_task is not asyncio.current_task():
            client.sender_task.cancel()
            try:
                await client.sender_task
            except asyncio.CancelledError:
                pass

        if client.websocket.application_state != WebSocketState.DISCONNECTED:
            try:
                await client.websocket.close()
            except Exception:
                # The peer closed first.
                pass

        self._logger.info(
            "session_client_disconnected",
            extra={
                "event": "session_client_disconnected",
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                "client_id": client_id,
            },
        )

    async def publish(self, client_id: int, event_type: str, payload: dict[str, Any]) -> None:
        client = self._clients.get(client_id)
        if client is None:
            return

        event = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }

        dropped = 0
        if client.queue.full():
            try:
                client.queue.get_nowait()
                client.queue.task_done()
                dropped += 1
            except asyncio.QueueEmpty:
                pass

        try:
            client.queue.put_nowait(event)
        except asyncio.QueueFull:
            dropped += 1

        async with self._lock:
            self._metrics.by_type[event_type] = self._metrics.by_type.get(event_type, 0) + 1
            self._metrics.events_emitted += 1
            self._metrics.events_dropped += dropped
            self._metrics.last_event_at = event["timestamp"]

    def get(self, client_id: int) -> ClientSession | None:
        return self._clients.get(client_id)

    def snapshot(self) -> dict[str, Any]:
        payload = asdict(self._metrics)
        payload["connected_client_ids"] = list(self._clients.keys())
        payload["sessions"] = {
            str(client_id): client.session.snapshot()
            for client_id, client in self._clients.items()
            if client.session is not None
        }
        return payload

    async def _sender_loop(self, client: ClientSession) -> None:
        while True:
            event = await client.queue.get()
            try:
                await client.websocket.send_json(event)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                async with self._lock:
                    self._metrics.last_error = str(exc)
                break
            finally:
                client.queue.task_done()

        await self.disconnect(client.client_id)
