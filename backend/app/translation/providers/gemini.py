from __future__ import annotations

from typing import Any, Callable

import httpx

from backend.app.settings import Settings
from backend.app.translation.providers.base import (
    TranslationProvider,
    TranslationProviderError,
    build_system_instruction,
    build_user_message,
)
from backend.app.translation.types import TranslationRequest


class GeminiTranslationProvider(TranslationProvider):
    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._settings = settings
        self._model_name = settings.gemini_model.removeprefix("models/")
        self._client_factory = client_factory or self._default_client

    @property
    def name(self) -> str:
        return "gemini-translation-provider"

    async def translate(self, request: TranslationRequest) -> str:
        if not self._settings.gemini_api_key:
            raise TranslationProviderError("gemini_api_key_missing")

        endpoint = (
            f"{self._settings.gemini_api_base_url}/models/"
            f"{self._model_name}:generateContent"
        )
        headers = {"x-goog-api-key": self._settings.gemini_api_key or ""}
        body = {
            "systemInstruction": {"parts": [{"text": build_system_instruction(request)}]},
            "contents": [{"role": "user", "parts": [{"text": build_user_message(request)}]}],
            "generationConfig": {
                "temperature": self._settings.translation_temperature,
                "maxOutputTokens": self._settings.translation_output_max_tokens,
                "responseMimeType": "text/plain",
            },
        }

        try:
            async with self._client_factory() as client:
                response = await client.post(endpoint, headers=headers, json=body)
        except httpx.RequestError as exc:
            raise TranslationProviderError(f"gemini_request_error:{exc}") from exc

        if response.status_code == 429:
            raise TranslationProviderError("gemini_rate_limited")

        if response.status_code != 200:
            raise TranslationProviderError(f"gemini_status_error:{response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranslationProviderError("gemini_malformed_response") from exc

        if not isinstance(payload, dict):
            raise TranslationProviderError("gemini_malformed_response")

        return self._extract_text(payload)

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.translation_timeout_seconds)
        )

    def _extract_text(self, payload: dict[str, Any]) -> str:
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return ""

        first = candidates[0]
        if not isinstance(first, dict):
            return ""
        content = first.get("content") or {}
        parts = content.get("parts", []) if isinstance(content, dict) else []
        if not isinstance(parts, list):
            return ""

        segments: list[str] = []
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                segments.append(part["text"])

        return "".join(segments).strip()
