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


class OpenAIChatTranslationProvider(TranslationProvider):
    """Chat Completions provider; works against any OpenAI-compatible base URL."""

    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or self._default_client

    @property
    def name(self) -> str:
        return "openai-translation-provider"

    async def translate(self, request: TranslationRequest) -> str:
        if not self._settings.openai_api_key:
            raise TranslationProviderError("openai_api_key_missing")

        endpoint = f"{self._settings.openai_api_base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self._settings.openai_api_key}"}
        body = {
            "model": self._settings.openai_model,
            "temperature": self._settings.translation_temperature,
            "max_tokens": self._settings.translation_output_max_tokens,
            "messages": [
                {"role": "system", "content": build_system_instruction(request)},
                {"role": "user", "content": build_user_message(request)},
            ],
        }

        try:
            async with self._client_factory() as client:
                response = await client.post(endpoint, headers=headers, json=body)
        except httpx.RequestError as exc:
            raise TranslationProviderError(f"openai_request_error:{exc}") from exc

        if response.status_code == 429:
            raise TranslationProviderError("openai_rate_limited")

        if response.status_code != 200:
            raise TranslationProviderError(f"openai_status_error:{response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranslationProviderError("openai_malformed_response") from exc

        if not isinstance(payload, dict):
            raise TranslationProviderError("openai_malformed_response")

        return self._extract_text(payload)

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.translation_timeout_seconds)
        )

    def _extract_text(self, payload: dict[str, Any]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""

        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            return ""

        content = message.get("content")
        if not isinstance(content, str):
            return ""
        return content.strip()
