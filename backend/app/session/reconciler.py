from __future__ import annotations

from typing import Iterable

from backend.app.recognition.types import RecognitionEvent

ACCUMULATING = "accumulating"
CONSERVATIVE = "conservative"
RECONCILE_MODES = (ACCUMULATING, CONSERVATIVE)


class TranscriptReconciler:
    """Folds recognition events into the single string shown to the user.

    Every event repeats all results of the current stream, so the display is
    recomputed from the event alone, plus whatever earlier streams committed.

    ``accumulating`` joins every final result and appends the trailing interim
    result, so finalized text is never retracted. ``conservative`` keeps only
    the most recent final result and interim result; it is meant for
    recognizers that re-send overlapping finals, where accumulating would
    repeat the same words.
    """

    def __init__(self, mode: str = ACCUMULATING) -> None:
        if mode not in RECONCILE_MODES:
            raise ValueError(f"unsupported reconcile mode: {mode}")
        self._mode = mode
        self._committed = ""
        self._display = ""

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def display_text(self) -> str:
        return self._display

    def reset(self) -> None:
        self._committed = ""
        self._display = ""

    def begin_stream(self) -> None:
        """Start a new recognizer stream without losing the text shown so far."""
        if self._mode == ACCUMULATING:
            self._committed = self._display

    def apply(self, event: RecognitionEvent) -> str:
        if self._mode == ACCUMULATING:
            stream_text = self._accumulate(event)
            self._display = _join(self._committed, stream_text)
        else:
            self._display = self._latest(event)
        return self._display

    def fold(self, events: Iterable[RecognitionEvent]) -> str:
        for event in events:
            self.apply(event)
        return self._display

    def _accumulate(self, event: RecognitionEvent) -> str:
        results = event.results
        if not results:
            return ""

        final_text = "".join(
            f"{result.transcript} " for result in results if result.is_final
        )
        last = results[-1]
        interim = "" if last.is_final else last.transcript
        return (final_text + interim).strip()

    def _latest(self, event: RecognitionEvent) -> str:
        final_text = ""
        interim = ""
        for result in event.results:
            if result.is_final:
                final_text = f"{result.transcript} "
            else:
                interim = result.transcript
        return (final_text + interim).strip()


def _join(prefix: str, suffix: str) -> str:
    if not prefix:
        return suffix
    if not suffix:
        return prefix
    return f"{prefix} {suffix}"
