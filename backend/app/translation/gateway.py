from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from time import monotonic
from typing import Any

from pydantic import ValidationError

from backend.app.ratelimit.store import RateLimitStore
from backend.app.settings import Settings
from backend.app.translation.providers.base import (
    TranslationProvider,
    TranslationProviderError,
)
from backend.app.translation.providers.gemini import GeminiTranslationProvider
from backend.app.translation.providers.mock import MockTranslationProvider
from backend.app.translation.providers.openai import OpenAIChatTranslationProvider
from backend.app.translation.types import TranslationRequest, TranslationResult


class TranslationGatewayError(Exception):
    """Base class for failures surfaced to gateway callers."""


class TranslationValidationError(TranslationGatewayError):
    """The request payload is malformed; the caller should not retry it as-is."""


class RateLimitExceeded(TranslationGatewayError):
    """The caller's key used up its request budget for the current window."""


class TranslationFailed(TranslationGatewayError):
    """The provider call failed; details are logged, never surfaced."""


@dataclass
class GatewayMetrics:
    provider_name: str | None = None
    requests_total: int = 0
    rate_limited: int = 0
    rejected: int = 0
    succeeded: int = 0
    failed: int = 0
    average_latency_ms: float = 0.0
    last_latency_ms: float = 0.0
    last_result_at: str | None = None
    last_error: str | None = None


def build_translation_provider(settings: Settings) -> TranslationProvider:
    if settings.translation_mode == "mock":
        return MockTranslationProvider()

    if settings.translation_mode == "openai":
        return OpenAIChatTranslationProvider(settings=settings)

    if settings.translation_mode == "gemini":
        return GeminiTranslationProvider(settings=settings)

    raise ValueError("unsupported translation mode. Expected 'openai', 'gemini' or 'mock'.")


class TranslationGateway:
    """Rate limits, validates and forwards translation requests to a provider."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        rate_limit_store: RateLimitStore,
        provider_override: TranslationProvider | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._rate_limit_store = rate_limit_store
        self._provider = provider_override or build_translation_provider(settings)
        self._metrics = GatewayMetrics(provider_name=self._provider.name)
        self._lock = asyncio.Lock()

    @property
    def provider_name(self) -> str:
        return self._provider.name

    def validate(self, payload: Any) -> TranslationRequest:
        if not isinstance(payload, dict):
            raise TranslationValidationError("request body must be a JSON object")
        try:
            return TranslationRequest.model_validate(payload)
        except ValidationError as exc:
            raise TranslationValidationError(str(exc)) from exc

    async def handle(self, payload: Any, client_key: str) -> TranslationResult:
        """Rate limit ``client_key``, validate ``payload`` and translate it."""
        async with self._lock:
            self._metrics.requests_total += 1

        if not self._rate_limit_store.increment(client_key, monotonic()):
            async with self._lock:
                self._metrics.rate_limited += 1
            self._logger.warning(
                "translation_rate_limited",
                extra={
                    "event": "translation_rate_limited",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "client_key": client_key,
                },
            )
            raise RateLimitExceeded(client_key)

        try:
            request = self.validate(payload)
        except TranslationValidationError:
            async with self._lock:
                self._metrics.rejected += 1
            raise

        return await self.translate(request)

    async def translate(self, request: TranslationRequest) -> TranslationResult:
        started = monotonic()
        try:
            translated = await self._provider.translate(request)
        except TranslationProviderError as exc:
            await self._record_failure(str(exc), request)
            raise TranslationFailed("translation_failed") from exc
        except Exception as exc:
            await self._record_failure(f"unexpected_provider_error:{type(exc).__name__}:{exc}", request)
            raise TranslationFailed("translation_failed") from exc

        latency_ms = round((monotonic() - started) * 1000.0, 3)
        created_at = datetime.now(timezone.utc)
        result = TranslationResult(
            translated=(translated or "").strip(),
            target_lang=request.target_lang,
            provider_name=self._provider.name,
            created_at=created_at,
            latency_ms=latency_ms,
        )

        async with self._lock:
            previous_count = self._metrics.succeeded
            previous_avg = self._metrics.average_latency_ms
            self._metrics.succeeded += 1
            self._metrics.last_latency_ms = latency_ms
            self._metrics.last_result_at = created_at.isoformat()
            self._metrics.last_error = None
            self._metrics.average_latency_ms = round(
                ((previous_avg * previous_count) + latency_ms) / self._metrics.succeeded,
                3,
            )

        self._logger.info(
            "translation_completed",
            extra={
                "event": "translation_completed",
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                "provider_name": self._provider.name,
                "target_lang": request.target_lang,
                "source_lang": request.source_lang or "auto",
                "latency_ms": latency_ms,
            },
        )
        return result

    def snapshot(self) -> dict[str, object]:
        payload = asdict(self._metrics)
        payload["translation_mode"] = self._settings.translation_mode
        payload["rate_limit"] = self._rate_limit_store.snapshot()
        return payload

    async def _record_failure(self, reason: str, request: TranslationRequest) -> None:
        async with self._lock:
            self._metrics.failed += 1
            self._metrics.last_error = reason

        self._logger.error(
            "translation_provider_error",
            extra={
                "event": "translation_provider_error",
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                "provider_name": self._provider.name,
                "target_lang": request.target_lang,
                "reason": reason,
            },
        )
