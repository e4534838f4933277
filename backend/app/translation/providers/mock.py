from __future__ import annotations

import asyncio

from backend.app.translation.providers.base import TranslationProvider
from backend.app.translation.types import TranslationRequest

MOCK_PHRASEBOOK: dict[tuple[str, str], str] = {
    ("the patient has a fever", "es"): "el paciente tiene fiebre",
    ("where does it hurt", "es"): "dónde le duele",
    ("take this medicine twice a day", "es"): "tome este medicamento dos veces al día",
    ("the patient has a fever", "fr"): "le patient a de la fièvre",
    ("where does it hurt", "fr"): "où avez-vous mal",
}


class MockTranslationProvider(TranslationProvider):
    """Offline provider: phrasebook lookups, otherwise the text tagged with the target code."""

    def __init__(self, delay_seconds: float = 0.0) -> None:
        self._delay_seconds = max(0.0, delay_seconds)

    @property
    def name(self) -> str:
        return "mock-translation-provider"

    async def translate(self, request: TranslationRequest) -> str:
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)

        key = (request.text.strip().lower().rstrip(".?!"), request.target_lang.lower())
        phrase = MOCK_PHRASEBOOK.get(key)
        if phrase is not None:
            return phrase
        return f"[{request.target_lang}] {request.text.strip()}"
