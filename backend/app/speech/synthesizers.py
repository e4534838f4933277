from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

import httpx

from backend.app.settings import Settings


class SpeechSynthesisError(Exception):
    """Raised when audio cannot be synthesized."""


class SpeechNotConfigured(SpeechSynthesisError):
    """Raised when the synthesizer has no credentials."""


class SpeechSynthesizer(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def default_voice_id(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def synthesize(self, text: str, voice_id: str) -> bytes:
        raise NotImplementedError


class MockSpeechSynthesizer(SpeechSynthesizer):
    def __init__(self, default_voice_id: str = "mock-default-voice") -> None:
        self._default_voice_id = default_voice_id
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "mock-speech-synthesizer"

    @property
    def default_voice_id(self) -> str:
        return self._default_voice_id

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        self.calls.append((text, voice_id))
        return f"mock-audio:{voice_id}:{text}".encode("utf-8")


class ElevenLabsSpeechSynthesizer(SpeechSynthesizer):
    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or self._default_client

    @property
    def name(self) -> str:
        return "elevenlabs-speech-synthesizer"

    @property
    def default_voice_id(self) -> str:
        return self._settings.elevenlabs_voice_id

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        api_key = (self._settings.elevenlabs_api_key or "").strip()
        if not api_key:
            raise SpeechNotConfigured("ELEVENLABS_API_KEY not configured")

        endpoint = f"{self._settings.elevenlabs_api_base_url}/text-to-speech/{voice_id}"
        payload = {
            "text": text,
            "model_id": self._settings.elevenlabs_model_id,
        }
        headers = {
            "xi-api-key": api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }

        try:
            async with self._client_factory() as client:
                upstream = await client.post(endpoint, headers=headers, json=payload)
        except httpx.RequestError as exc:
            raise SpeechSynthesisError(f"elevenlabs_request_error:{exc}") from exc

        if upstream.status_code >= 400:
            detail = f"elevenlabs_http_{upstream.status_code}"
            try:
                error_payload = upstream.json()
            except ValueError:
                error_payload = None
            if isinstance(error_payload, dict):
                message = str(
                    error_payload.get("detail") or error_payload.get("message") or ""
                ).strip()
                if message:
                    detail = f"{detail}:{message}"
            raise SpeechSynthesisError(detail)

        return upstream.content

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self._settings.speech_timeout_seconds))
