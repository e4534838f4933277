from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TranslationRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(min_length=1)
    target_lang: str = Field(alias="targetLang", min_length=2, max_length=5)
    source_lang: str | None = Field(default=None, alias="sourceLang")


@dataclass(frozen=True)
class TranslationResult:
    translated: str
    target_lang: str
    provider_name: str
    created_at: datetime
    latency_ms: float

    def to_dict(self) -> dict[str, object]:
        return {"translated": self.translated}
