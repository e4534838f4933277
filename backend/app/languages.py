from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Language:
    code: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "label": self.label}


LANGUAGES: tuple[Language, ...] = (
    Language(code="en", label="English"),
    Language(code="es", label="Spanish"),
    Language(code="ur", label="Urdu"),
    Language(code="ar", label="Arabic"),
    Language(code="bn", label="Bengali"),
    Language(code="fr", label="French"),
    Language(code="de", label="German"),
    Language(code="hi", label="Hindi"),
    Language(code="tl", label="Tagalog"),
    Language(code="zh", label="Chinese"),
)


def get_label(code: str) -> str:
    """Return the display label for ``code``, or the code itself when unknown."""
    for language in LANGUAGES:
        if language.code == code:
            return language.label
    return code
