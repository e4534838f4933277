from __future__ import annotations

import unittest

from backend.app.recognition.types import RecognitionEvent


class RecognitionEventPayloadTest(unittest.TestCase):
    def test_browser_payload_is_parsed(self) -> None:
        event = RecognitionEvent.from_payload(
            {
                "results": [
                    {"isFinal": True, "alternatives": [{"transcript": "my chest", "confidence": 0.92}]},
                    {"isFinal": False, "alternatives": [{"transcript": " hurts", "confidence": 1}]},
                ]
            }
        )

        self.assertEqual([result.transcript for result in event.results], ["my chest", " hurts"])
        self.assertEqual([result.is_final for result in event.results], [True, False])
        self.assertEqual(event.results[0].alternatives[0].confidence, 0.92)
        self.assertEqual(event.results[1].alternatives[0].confidence, 1.0)

    def test_null_fields_read_as_empty(self) -> None:
        event = RecognitionEvent.from_payload(
            {"results": [{"isFinal": False, "alternatives": [{"transcript": None, "confidence": None}]}]}
        )
        self.assertEqual(event.results[0].transcript, "")
        self.assertEqual(event.results[0].alternatives[0].confidence, 0.0)

        event = RecognitionEvent.from_payload({"results": [{"alternatives": [{}]}]})
        self.assertEqual(event.results[0].transcript, "")
        self.assertFalse(event.results[0].is_final)

    def test_empty_results_is_an_empty_event(self) -> None:
        self.assertEqual(RecognitionEvent.from_payload({"results": []}).results, ())

    def test_malformed_payloads_are_rejected(self) -> None:
        invalid = [
            {},
            {"results": "the patient"},
            {"results": ["the patient"]},
            {"results": [{"isFinal": True}]},
            {"results": [{"isFinal": True, "alternatives": []}]},
            {"results": [{"isFinal": True, "alternatives": ["the patient"]}]},
            {"results": [{"alternatives": [{"transcript": 42}]}]},
            {"results": [{"alternatives": [{"transcript": "fever", "confidence": "high"}]}]},
            {"results": [{"alternatives": [{"transcript": "fever", "confidence": True}]}]},
        ]
        for payload in invalid:
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    RecognitionEvent.from_payload(payload)


if __name__ == "__main__":
    unittest.main()
