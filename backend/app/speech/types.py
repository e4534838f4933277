from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Voice:
    voice_id: str
    language: str
    name: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"voice_id": self.voice_id, "language": self.language, "name": self.name}


@dataclass(frozen=True)
class SpeechAudio:
    audio: bytes
    media_type: str
    voice_id: str
    language: str


def parse_voice_catalog(raw: str | None) -> list[Voice]:
    """Parse ``"es-ES=<voice id>,fr-FR=<voice id>"`` into voices, in order."""
    voices: list[Voice] = []
    if not raw:
        return voices

    for entry in raw.split(","):
        language, separator, voice_id = entry.partition("=")
        language = language.strip()
        voice_id = voice_id.strip()
        if not separator or not language or not voice_id:
            raise ValueError(f"invalid SPEECH_VOICES entry: {entry.strip()!r}")
        voices.append(Voice(voice_id=voice_id, language=language))
    return voices


def select_voice(voices: list[Voice], language: str) -> Voice | None:
    """First voice whose language tag starts with ``language``, ignoring case."""
    wanted = language.strip().lower()
    if not wanted:
        return None
    for voice in voices:
        if voice.language.lower().startswith(wanted):
            return voice
    return None
