from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from backend.app.languages import get_label
from backend.app.recognition.streams import RecognitionStream
from backend.app.recognition.types import (
    RECOVERABLE,
    TRANSIENT,
    RecognitionConfig,
    RecognitionEvent,
    RecognitionStreamEnded,
    RecognitionStreamError,
    classify_recognition_error,
    recognition_error_message,
)
from backend.app.session.debounce import DebouncedDispatcher
from backend.app.session.reconciler import ACCUMULATING, RECONCILE_MODES, TranscriptReconciler
from backend.app.settings import Settings
from backend.app.speech.output import SpeechOutput
from backend.app.speech.types import SpeechAudio
from backend.app.translation.gateway import (
    RateLimitExceeded,
    TranslationFailed,
    TranslationGateway,
    TranslationValidationError,
)

IDLE = "idle"
LISTENING = "listening"

_ENDED = "ended"
_FATAL = "fatal"
_STOPPED = "stopped"

EventPublisher = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass(frozen=True)
class SessionConfig:
    source_lang: str
    target_lang: str
    reconcile_mode: str = ACCUMULATING
    continuous: bool = True
    interim_results: bool = True
    max_alternatives: int | None = None

    def __post_init__(self) -> None:
        if self.reconcile_mode not in RECONCILE_MODES:
            raise ValueError(f"unsupported reconcile mode: {self.reconcile_mode}")

    def recognition_config(self) -> RecognitionConfig:
        return RecognitionConfig(
            language=self.source_lang,
            continuous=self.continuous,
            interim_results=self.interim_results,
            max_alternatives=self.max_alternatives,
        )


@dataclass
class SessionMetrics:
    started_at: str | None = None
    streams_opened: int = 0
    restart_count: int = 0
    events_received: int = 0
    transcript_updates: int = 0
    dispatches: int = 0
    translations_received: int = 0
    translation_failures: int = 0
    stale_translations: int = 0
    notices: int = 0
    last_error: str | None = None


class LiveTranslationSession:
    """Owns the live transcript and its translation for one listener.

    Recognition events are folded into the display text, which is fed to a
    debounced dispatcher that calls the translation gateway. When the
    recognizer ends on its own while the listener still wants to listen, a new
    stream is opened after a backoff delay, up to a fixed number of attempts.
    """

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        gateway: TranslationGateway,
        stream_factory: Callable[[], RecognitionStream],
        publish: EventPublisher,
        client_key: str = "local",
        speech_output: SpeechOutput | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._gateway = gateway
        self._stream_factory = stream_factory
        self._publish = publish
        self._client_key = client_key
        self._speech_output = speech_output
        self._metrics = SessionMetrics()

        self._state = IDLE
        self._restarting = False
        # Bumped on every start so responses from an earlier run are dropped.
        self._generation = 0
        self._display = ""
        self._translated = ""
        self._source_lang = settings.session_default_source_lang
        self._target_lang = settings.session_default_target_lang
        self._config: SessionConfig | None = None
        self._reconciler = TranscriptReconciler(settings.recognition_mode)
        self._dispatcher = DebouncedDispatcher(
            quiet_period_seconds=settings.session_debounce_seconds,
            dispatch=self._translate,
            logger=logger,
        )
        self._stream: RecognitionStream | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> str:
        return self._state

    @property
    def listening(self) -> bool:
        return self._state == LISTENING

    @property
    def restarting(self) -> bool:
        return self._restarting

    @property
    def display_text(self) -> str:
        return self._display

    @property
    def translated_text(self) -> str:
        return self._translated

    @property
    def source_lang(self) -> str:
        return self._source_lang

    @property
    def target_lang(self) -> str:
        return self._target_lang

    @property
    def reconcile_mode(self) -> str:
        return self._reconciler.mode

    def default_config(self) -> SessionConfig:
        return SessionConfig(
            source_lang=self._source_lang,
            target_lang=self._target_lang,
            reconcile_mode=self._settings.recognition_mode,
        )

    async def start(self, config: SessionConfig | None = None) -> bool:
        if self._state == LISTENING:
            return True

        config = config or self.default_config()
        self._config = config
        self._source_lang = config.source_lang
        self._target_lang = config.target_lang
        self._reconciler = TranscriptReconciler(config.reconcile_mode)
        self._generation += 1
        self._dispatcher.cancel()
        self._dispatcher.reset()
        await self._set_display("")
        await self._set_translated("")

        stream = self._stream_factory()
        try:
            await stream.open(config.recognition_config())
        except Exception as exc:
            await stream.close()
            await self._notice(
                "error",
                "start_failed",
                "Failed to start microphone. Please try again.",
                reason=str(exc),
            )
            return False

        self._stream = stream
        self._state = LISTENING
        self._restarting = False
        self._metrics.streams_opened += 1
        self._metrics.started_at = datetime.now(timezone.utc).isoformat()
        self._logger.info(
            "session_listening",
            extra={
                "event": "session_listening",
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                "client_key": self._client_key,
                "stream_name": stream.name,
                "reconcile_mode": config.reconcile_mode,
                "source_lang": config.source_lang,
                "target_lang": config.target_lang,
            },
        )
        await self._publish_state()
        self._task = asyncio.create_task(self._run(stream), name="live-session-loop")
        return True

    async def stop(self) -> None:
        was_listening = self._state == LISTENING
        self._state = IDLE
        self._restarting = False

        task = self._task
        self._task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._close_stream()
        if was_listening:
            await self._publish_state()

    async def close(self) -> None:
        await self.stop()
        await self._dispatcher.close()

    async def set_text(self, text: str) -> None:
        """Replace the transcript by hand, as when the user edits it."""
        await self._set_display(text)
        self._dispatcher.update(text)

    async def set_languages(self, source_lang: str | None, target_lang: str | None) -> None:
        changed = False
        if source_lang and source_lang != self._source_lang:
            self._source_lang = source_lang
            changed = True
        if target_lang and target_lang != self._target_lang:
            self._target_lang = target_lang
            changed = True

        if changed and self._display:
            self._dispatcher.reset()
            self._dispatcher.flush(self._display)

    def speak(self) -> asyncio.Task[None] | None:
        if not self._translated or self._speech_output is None:
            return None
        return self._speech_output.speak(
            self._translated,
            self._target_lang,
            self._deliver_audio,
            on_error=self._speech_failed,
        )

    def snapshot(self) -> dict[str, object]:
        payload = asdict(self._metrics)
        payload["state"] = self._state
        payload["restarting"] = self._restarting
        payload["reconcile_mode"] = self._reconciler.mode
        payload["source_lang"] = self._source_lang
        payload["target_lang"] = self._target_lang
        payload["debounce_pending"] = self._dispatcher.pending
        payload["translations_in_flight"] = self._dispatcher.inflight_count
        return payload

    async def _run(self, stream: RecognitionStream) -> None:
        attempts = 0
        while self._state == LISTENING:
            outcome, events_seen = await self._consume(stream)
            if outcome != _ENDED:
                return

            await self._close_stream()
            if self._state != LISTENING:
                return

            if events_seen:
                attempts = 0
            attempts += 1
            if attempts > self._settings.recognition_max_restart_attempts:
                await self._notice(
                    "error",
                    "restart_limit",
                    "Microphone stopped after repeated interruptions. Please start again.",
                    reason=f"restart_attempts:{attempts - 1}",
                )
                await self._force_idle()
                return

            delay = self._restart_delay(attempts)
            self._restarting = True
            self._metrics.restart_count += 1
            await self._publish(
                "recognition.restarting",
                {"attempt": attempts, "delay_seconds": delay},
            )
            await self._publish_state()
            await asyncio.sleep(delay)
            if self._state != LISTENING:
                return

            stream = self._stream_factory()
            try:
                await stream.open(self._active_config().recognition_config())
            except Exception as exc:
                await stream.close()
                await self._notice(
                    "error",
                    "restart_failed",
                    "Error restarting microphone. Please start again.",
                    reason=str(exc),
                )
                await self._force_idle()
                return

            self._stream = stream
            self._metrics.streams_opened += 1
            self._reconciler.begin_stream()
            self._restarting = False
            await self._publish_state()

    async def _consume(self, stream: RecognitionStream) -> tuple[str, int]:
        events_seen = 0
        while self._state == LISTENING:
            try:
                event = await stream.read_event()
            except RecognitionStreamEnded:
                return _ENDED, events_seen
            except RecognitionStreamError as exc:
                kind = classify_recognition_error(exc.code)
                if kind == TRANSIENT:
                    continue
                if kind == RECOVERABLE:
                    await self._notice("warning", exc.code, recognition_error_message(exc.code))
                    continue
                await self._notice("error", exc.code, recognition_error_message(exc.code))
                await self._force_idle()
                return _FATAL, events_seen

            events_seen += 1
            await self._apply_event(event)
        return _STOPPED, events_seen

    async def _apply_event(self, event: RecognitionEvent) -> None:
        self._metrics.events_received += 1
        text = self._reconciler.apply(event)
        if text == self._display:
            return
        await self._set_display(text)
        self._dispatcher.update(text)

    async def _translate(self, text: str) -> None:
        generation = self._generation
        self._metrics.dispatches += 1
        payload = {
            "text": text,
            "targetLang": self._target_lang,
            "sourceLang": self._source_lang,
        }
        try:
            result = await self._gateway.handle(payload, self._client_key)
        except RateLimitExceeded:
            if self._is_current(generation):
                self._metrics.translation_failures += 1
                await self._notice("warning", "rate_limited", "Rate limit")
            return
        except TranslationValidationError:
            if self._is_current(generation):
                self._metrics.translation_failures += 1
                await self._notice("warning", "bad_request", "Bad request")
            return
        except TranslationFailed:
            if self._is_current(generation):
                self._metrics.translation_failures += 1
                await self._notice("error", "translation_failed", "Translation failed")
            return

        if not self._is_current(generation):
            return
        self._metrics.translations_received += 1
        if result.translated:
            await self._set_translated(result.translated, result.target_lang)

    def _is_current(self, generation: int) -> bool:
        if generation == self._generation:
            return True
        self._metrics.stale_translations += 1
        self._logger.info(
            "session_stale_translation_dropped",
            extra={
                "event": "session_stale_translation_dropped",
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                "client_key": self._client_key,
            },
        )
        return False

    async def _deliver_audio(self, audio: SpeechAudio) -> None:
        await self._publish(
            "speech.audio",
            {
                "voice_id": audio.voice_id,
                "language": audio.language,
                "media_type": audio.media_type,
                "audio_base64": base64.b64encode(audio.audio).decode("ascii"),
            },
        )

    async def _speech_failed(self, reason: str) -> None:
        await self._notice("warning", "speech_failed", "Speech playback failed.", reason=reason)

    async def _set_display(self, text: str) -> None:
        self._display = text
        self._metrics.transcript_updates += 1
        await self._publish("transcript.update", {"text": text})

    async def _set_translated(self, text: str, target_lang: str | None = None) -> None:
        target_lang = target_lang or self._target_lang
        self._translated = text
        await self._publish(
            "translation.update",
            {
                "text": text,
                "target_lang": target_lang,
                "target_label": get_label(target_lang),
            },
        )

    async def _force_idle(self) -> None:
        self._state = IDLE
        self._restarting = False
        self._task = None
        await self._close_stream()
        await self._publish_state()

    async def _close_stream(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is not None:
            await stream.close()

    async def _publish_state(self) -> None:
        await self._publish(
            "session.state",
            {"state": self._state, "restarting": self._restarting},
        )

    async def _notice(self, level: str, code: str, message: str, reason: str | None = None) -> None:
        self._metrics.notices += 1
        self._metrics.last_error = reason or code
        self._logger.warning(
            "session_notice",
            extra={
                "event": "session_notice",
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                "client_key": self._client_key,
                "level": level,
                "code": code,
                "reason": reason,
            },
        )
        await self._publish("notice", {"level": level, "code": code, "message": message})

    def _active_config(self) -> SessionConfig:
        return self._config or self.default_config()

    def _restart_delay(self, attempt: int) -> float:
        base = max(0.0, self._settings.recognition_restart_delay_seconds)
        multiplier = max(1.0, self._settings.recognition_restart_backoff_multiplier)
        delay = base * (multiplier ** (attempt - 1))
        return round(min(delay, self._settings.recognition_restart_max_delay_seconds), 3)
