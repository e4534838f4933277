from __future__ import annotations

from abc import ABC, abstractmethod

from backend.app.translation.types import TranslationRequest

SYSTEM_INSTRUCTION_TEMPLATE = (
    "You are a medical translation assistant. Translate clearly, preserve meaning, "
    "and keep/expand medical terminology accurately. "
    "Output ONLY the translation in {target_lang}. "
    "Never add information that is not present in the source text. "
    "If the input has patient-identifiable info, do not add extra details."
)


def build_system_instruction(request: TranslationRequest) -> str:
    return SYSTEM_INSTRUCTION_TEMPLATE.format(target_lang=request.target_lang)


def build_user_message(request: TranslationRequest) -> str:
    return f"Source language: {request.source_lang or 'auto'}\nText: {request.text}"


class TranslationProviderError(Exception):
    """Raised when a translation provider call fails."""


class TranslationProvider(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def translate(self, request: TranslationRequest) -> str:
        """Return the provider's translated text, possibly empty."""
        raise NotImplementedError
