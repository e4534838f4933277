from __future__ import annotations

import unittest

from backend.app.recognition.types import RecognitionEvent
from backend.app.session.reconciler import (
    ACCUMULATING,
    CONSERVATIVE,
    TranscriptReconciler,
)


def _finalized(event: RecognitionEvent) -> str:
    return " ".join(result.transcript for result in event.results if result.is_final)


class AccumulatingReconcilerTest(unittest.TestCase):
    def test_finalized_text_never_shrinks(self) -> None:
        events = [
            RecognitionEvent.of(("the", False)),
            RecognitionEvent.of(("the patient", False)),
            RecognitionEvent.of(("the patient", True)),
            RecognitionEvent.of(("the patient", True), ("has", False)),
            RecognitionEvent.of(("the patient", True), ("has a", False)),
            RecognitionEvent.of(("the patient", True), ("has a fever", True)),
            RecognitionEvent.of(("the patient", True), ("has a fever", True), ("since", False)),
        ]
        reconciler = TranscriptReconciler(ACCUMULATING)

        previous_finalized = ""
        for event in events:
            display = reconciler.apply(event)
            self.assertTrue(display.startswith(previous_finalized), msg=display)
            previous_finalized = _finalized(event)
            self.assertTrue(display.startswith(previous_finalized), msg=display)

        self.assertEqual(reconciler.display_text, "the patient has a fever since")

    def test_interim_suffix_is_replaced(self) -> None:
        reconciler = TranscriptReconciler(ACCUMULATING)

        self.assertEqual(
            reconciler.apply(RecognitionEvent.of(("hello", True), ("wear", False))),
            "hello wear",
        )
        self.assertEqual(
            reconciler.apply(RecognitionEvent.of(("hello", True), ("where does", False))),
            "hello where does",
        )

    def test_non_final_results_before_the_last_are_ignored(self) -> None:
        reconciler = TranscriptReconciler(ACCUMULATING)
        event = RecognitionEvent.of(("one", True), ("stale", False), ("two", True))

        self.assertEqual(reconciler.apply(event), "one two")

    def test_new_stream_is_appended_after_committed_text(self) -> None:
        reconciler = TranscriptReconciler(ACCUMULATING)
        reconciler.apply(RecognitionEvent.of(("where does it hurt", True)))

        reconciler.begin_stream()
        self.assertEqual(reconciler.display_text, "where does it hurt")
        self.assertEqual(
            reconciler.apply(RecognitionEvent.of(("my", False))),
            "where does it hurt my",
        )
        self.assertEqual(
            reconciler.apply(RecognitionEvent.of(("my chest", True))),
            "where does it hurt my chest",
        )

    def test_reset_clears_everything(self) -> None:
        reconciler = TranscriptReconciler(ACCUMULATING)
        reconciler.apply(RecognitionEvent.of(("hello", True)))
        reconciler.begin_stream()
        reconciler.reset()

        self.assertEqual(reconciler.display_text, "")
        self.assertEqual(reconciler.apply(RecognitionEvent.of(("again", False))), "again")

    def test_fold_matches_sequential_apply(self) -> None:
        events = [
            RecognitionEvent.of(("take", False)),
            RecognitionEvent.of(("take this", True), ("medicine", False)),
        ]
        self.assertEqual(TranscriptReconciler().fold(events), "take this medicine")

    def test_empty_event_yields_empty_stream_text(self) -> None:
        reconciler = TranscriptReconciler(ACCUMULATING)
        self.assertEqual(reconciler.apply(RecognitionEvent(results=())), "")


class ConservativeReconcilerTest(unittest.TestCase):
    def test_repeated_finals_do_not_accumulate(self) -> None:
        final = "hello there"
        interims = ["how", "how are", "how are you", "how are you today"]
        reconciler = TranscriptReconciler(CONSERVATIVE)

        repeated: list[tuple[str, bool]] = []
        for interim in interims:
            repeated.append((final, True))
            event = RecognitionEvent.of(*repeated, (interim, False))
            display = reconciler.apply(event)

            self.assertEqual(display.count(final), 1, msg=display)
            self.assertLessEqual(len(display), len(final) + len(interim) + 1)
            self.assertEqual(display, f"{final} {interim}")

    def test_only_latest_final_is_kept(self) -> None:
        reconciler = TranscriptReconciler(CONSERVATIVE)
        event = RecognitionEvent.of(("first", True), ("second", True))

        self.assertEqual(reconciler.apply(event), "second")

    def test_new_stream_replaces_text_once_it_produces_output(self) -> None:
        reconciler = TranscriptReconciler(CONSERVATIVE)
        reconciler.apply(RecognitionEvent.of(("before restart", True)))

        reconciler.begin_stream()
        self.assertEqual(reconciler.display_text, "before restart")
        self.assertEqual(reconciler.apply(RecognitionEvent.of(("after", False))), "after")


class ReconcilerModeTest(unittest.TestCase):
    def test_unknown_mode_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            TranscriptReconciler("mobile")

    def test_accumulating_duplicates_where_conservative_does_not(self) -> None:
        event = RecognitionEvent.of(("okay", True), ("okay", True), ("then", False))

        self.assertEqual(TranscriptReconciler(ACCUMULATING).apply(event), "okay okay then")
        self.assertEqual(TranscriptReconciler(CONSERVATIVE).apply(event), "okay then")


if __name__ == "__main__":
    unittest.main()
