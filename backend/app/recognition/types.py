from __future__ import annotations

from dataclasses import dataclass
from typing import Any

TRANSIENT = "transient"
RECOVERABLE = "recoverable"
FATAL = "fatal"

_TRANSIENT_CODES = frozenset({"no-speech"})
_RECOVERABLE_CODES = frozenset({"speech-not-recognized", "no-match"})

_ERROR_MESSAGES = {
    "speech-not-recognized": (
        "Speech not recognized clearly. Try speaking more slowly or use manual typing."
    ),
    "no-match": (
        "Speech not recognized clearly. Try speaking more slowly or use manual typing."
    ),
    "audio-capture": "No microphone detected. Please check your microphone.",
}


@dataclass(frozen=True)
class RecognitionAlternative:
    transcript: str
    confidence: float = 0.0


@dataclass(frozen=True)
class RecognitionResult:
    alternatives: tuple[RecognitionAlternative, ...]
    is_final: bool

    def __post_init__(self) -> None:
        if not self.alternatives:
            raise ValueError("a recognition result needs at least one alternative")

    @property
    def transcript(self) -> str:
        return self.alternatives[0].transcript


@dataclass(frozen=True)
class RecognitionEvent:
    """Every result of the current stream, in stream order."""

    results: tuple[RecognitionResult, ...]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RecognitionEvent:
        raw_results = payload.get("results")
        if not isinstance(raw_results, list):
            raise ValueError("results must be a list")

        results: list[RecognitionResult] = []
        for raw in raw_results:
            if not isinstance(raw, dict):
                raise ValueError("each result must be an object")
            raw_alternatives = raw.get("alternatives")
            if not isinstance(raw_alternatives, list):
                raise ValueError("alternatives must be a list")
            alternatives = tuple(
                _alternative_from_payload(item) for item in raw_alternatives if isinstance(item, dict)
            )
            results.append(
                RecognitionResult(alternatives=alternatives, is_final=bool(raw.get("isFinal")))
            )
        return cls(results=tuple(results))

    @classmethod
    def of(cls, *segments: tuple[str, bool]) -> RecognitionEvent:
        """Build an event from ``(transcript, is_final)`` pairs."""
        return cls(
            results=tuple(
                RecognitionResult(
                    alternatives=(RecognitionAlternative(transcript=text, confidence=1.0),),
                    is_final=is_final,
                )
                for text, is_final in segments
            )
        )


def _alternative_from_payload(item: dict[str, Any]) -> RecognitionAlternative:
    transcript = item.get("transcript")
    if transcript is None:
        transcript = ""
    elif not isinstance(transcript, str):
        raise ValueError("transcript must be a string")

    confidence = item.get("confidence")
    if confidence is None:
        confidence = 0.0
    elif isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ValueError("confidence must be a number")

    return RecognitionAlternative(transcript=transcript, confidence=float(confidence))


@dataclass(frozen=True)
class RecognitionConfig:
    language: str
    continuous: bool = True
    interim_results: bool = True
    max_alternatives: int | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "continuous": self.continuous,
            "interimResults": self.interim_results,
            "language": self.language,
        }
        if self.max_alternatives is not None:
            payload["maxAlternatives"] = self.max_alternatives
        return payload


class RecognitionStreamError(Exception):
    """An ``error`` event reported by the recognizer, carrying its code."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


class RecognitionStreamEnded(Exception):
    """Raised when the recognizer ends the current stream."""


def classify_recognition_error(code: str) -> str:
    if code in _TRANSIENT_CODES:
        return TRANSIENT
    if code in _RECOVERABLE_CODES:
        return RECOVERABLE
    return FATAL


def recognition_error_message(code: str) -> str:
    return _ERROR_MESSAGES.get(code, f"Microphone error: {code}")
