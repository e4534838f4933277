from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from backend.app.settings import Settings
from backend.app.speech.synthesizers import (
    ElevenLabsSpeechSynthesizer,
    MockSpeechSynthesizer,
    SpeechSynthesisError,
    SpeechSynthesizer,
)
from backend.app.speech.types import SpeechAudio, Voice, parse_voice_catalog, select_voice

AUDIO_MEDIA_TYPE = "audio/mpeg"


def build_speech_synthesizer(settings: Settings) -> SpeechSynthesizer:
    if settings.speech_mode == "mock":
        return MockSpeechSynthesizer()
    if settings.speech_mode == "elevenlabs":
        return ElevenLabsSpeechSynthesizer(settings=settings)
    raise ValueError("unsupported speech mode. Expected 'elevenlabs' or 'mock'.")


class SpeechOutput:
    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        synthesizer_override: SpeechSynthesizer | None = None,
        voices: list[Voice] | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._synthesizer = synthesizer_override or build_speech_synthesizer(settings)
        self._voices = voices if voices is not None else parse_voice_catalog(settings.speech_voices)
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def voices(self) -> list[Voice]:
        return list(self._voices)

    def resolve_voice_id(self, language: str) -> str:
        voice = select_voice(self._voices, language)
        if voice is None:
            return self._synthesizer.default_voice_id
        return voice.voice_id

    async def synthesize(self, text: str, language: str) -> SpeechAudio:
        cleaned = text.strip()
        if not cleaned:
            raise ValueError("text is required")
        if len(cleaned) > self._settings.speech_max_text_chars:
            raise ValueError(
                f"text too long (max {self._settings.speech_max_text_chars} chars)"
            )

        voice_id = self.resolve_voice_id(language)
        audio = await self._synthesizer.synthesize(cleaned, voice_id)
        return SpeechAudio(
            audio=audio,
            media_type=AUDIO_MEDIA_TYPE,
            voice_id=voice_id,
            language=language,
        )

    def speak(
        self,
        text: str,
        language: str,
        sink: Callable[[SpeechAudio], Awaitable[None]],
        on_error: Callable[[str], Awaitable[None]] | None = None,
    ) -> asyncio.Task[None]:
        """Synthesize in the background and hand the audio to ``sink``.

        Failures are logged and reported to ``on_error``; they never propagate.
        """
        task = asyncio.create_task(
            self._speak(text, language, sink, on_error), name="speech-output"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _speak(
        self,
        text: str,
        language: str,
        sink: Callable[[SpeechAudio], Awaitable[None]],
        on_error: Callable[[str], Awaitable[None]] | None,
    ) -> None:
        try:
            audio = await self.synthesize(text, language)
        except (SpeechSynthesisError, ValueError) as exc:
            self._logger.warning(
                "speech_output_failed",
                extra={
                    "event": "speech_output_failed",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "language": language,
                    "reason": str(exc),
                },
            )
            if on_error is not None:
                await on_error(str(exc))
            return

        await sink(audio)
