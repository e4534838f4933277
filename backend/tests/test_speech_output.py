from __future__ import annotations

import json
import logging
import os
import unittest
from typing import Any

import httpx
from fastapi.testclient import TestClient

from backend.app.main import create_app
from backend.app.settings import Settings
from backend.app.speech.output import AUDIO_MEDIA_TYPE, SpeechOutput
from backend.app.speech.synthesizers import (
    ElevenLabsSpeechSynthesizer,
    MockSpeechSynthesizer,
    SpeechNotConfigured,
    SpeechSynthesisError,
)
from backend.app.speech.types import SpeechAudio, Voice, parse_voice_catalog, select_voice


def _settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "service_name": "hct-backend",
        "service_version": "0.1.0-test",
        "environment": "test",
        "log_level": "INFO",
        "speech_mode": "mock",
        "elevenlabs_api_key": "xi-test",
        "elevenlabs_api_base_url": "https://tts.test/v1",
    }
    values.update(overrides)
    return Settings(**values)


class VoiceSelectionTest(unittest.TestCase):
    def test_prefix_match_is_case_insensitive_and_ordered(self) -> None:
        voices = [
            Voice(voice_id="us", language="en-US"),
            Voice(voice_id="gb", language="en-GB"),
            Voice(voice_id="mx", language="es-MX"),
        ]

        selected = select_voice(voices, "en")
        assert selected is not None
        self.assertEqual(selected.voice_id, "us")

        selected = select_voice(voices, "EN-gb")
        assert selected is not None
        self.assertEqual(selected.voice_id, "gb")

        selected = select_voice(voices, "es")
        assert selected is not None
        self.assertEqual(selected.voice_id, "mx")

    def test_no_match_returns_none(self) -> None:
        voices = [Voice(voice_id="us", language="en-US")]
        self.assertIsNone(select_voice(voices, "ur"))
        self.assertIsNone(select_voice(voices, ""))
        self.assertIsNone(select_voice([], "en"))

    def test_catalog_parsing(self) -> None:
        voices = parse_voice_catalog("es-ES=voice-es, fr-FR = voice-fr")
        self.assertEqual(
            voices,
            [Voice(voice_id="voice-es", language="es-ES"), Voice(voice_id="voice-fr", language="fr-FR")],
        )
        self.assertEqual(parse_voice_catalog(None), [])
        self.assertEqual(parse_voice_catalog(""), [])

        for raw in ("es-ES", "=voice", "es-ES=", "es-ES=a,,fr-FR=b"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    parse_voice_catalog(raw)


class SpeechOutputTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.logger = logging.getLogger("hct.backend.test")
        self.synthesizer = MockSpeechSynthesizer(default_voice_id="fallback")
        self.output = SpeechOutput(
            settings=_settings(speech_max_text_chars=20),
            logger=self.logger,
            synthesizer_override=self.synthesizer,
            voices=[Voice(voice_id="voice-es", language="es-ES")],
        )

    async def test_synthesize_uses_matching_voice(self) -> None:
        audio = await self.output.synthesize("  hola  ", "es")

        self.assertEqual(audio.voice_id, "voice-es")
        self.assertEqual(audio.language, "es")
        self.assertEqual(audio.media_type, AUDIO_MEDIA_TYPE)
        self.assertEqual(self.synthesizer.calls, [("hola", "voice-es")])

    async def test_unmatched_language_uses_default_voice(self) -> None:
        audio = await self.output.synthesize("bonjour", "fr")
        self.assertEqual(audio.voice_id, "fallback")

    async def test_text_is_validated(self) -> None:
        with self.assertRaises(ValueError):
            await self.output.synthesize("   ", "es")
        with self.assertRaises(ValueError):
            await self.output.synthesize("x" * 21, "es")
        self.assertEqual(self.synthesizer.calls, [])

    async def test_speak_hands_audio_to_sink(self) -> None:
        delivered: list[SpeechAudio] = []

        async def sink(audio: SpeechAudio) -> None:
            delivered.append(audio)

        await self.output.speak("hola", "es", sink)
        self.assertEqual(len(delivered), 1)
        self.assertEqual(delivered[0].audio, b"mock-audio:voice-es:hola")

    async def test_speak_failure_is_logged_not_raised(self) -> None:
        delivered: list[SpeechAudio] = []

        async def sink(audio: SpeechAudio) -> None:
            delivered.append(audio)

        with self.assertLogs("hct.backend.test", level="WARNING") as captured:
            await self.output.speak("", "es", sink)

        self.assertEqual(delivered, [])
        self.assertTrue(any("speech_output_failed" in line for line in captured.output))


class ElevenLabsSpeechSynthesizerTest(unittest.IsolatedAsyncioTestCase):
    async def test_request_shape(self) -> None:
        captured: dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["api_key"] = request.headers.get("xi-api-key")
            captured["accept"] = request.headers.get("accept")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"ID3-audio")

        synthesizer = ElevenLabsSpeechSynthesizer(
            settings=_settings(speech_mode="elevenlabs"),
            client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        audio = await synthesizer.synthesize("hola", "voice-es")

        self.assertEqual(audio, b"ID3-audio")
        self.assertEqual(captured["url"], "https://tts.test/v1/text-to-speech/voice-es")
        self.assertEqual(captured["api_key"], "xi-test")
        self.assertEqual(captured["accept"], "audio/mpeg")
        self.assertEqual(captured["body"], {"text": "hola", "model_id": "eleven_multilingual_v2"})

    async def test_upstream_error_detail_is_surfaced(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"detail": "invalid api key"})

        synthesizer = ElevenLabsSpeechSynthesizer(
            settings=_settings(speech_mode="elevenlabs"),
            client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with self.assertRaises(SpeechSynthesisError) as raised:
            await synthesizer.synthesize("hola", "voice-es")
        self.assertEqual(str(raised.exception), "elevenlabs_http_401:invalid api key")

    async def test_missing_key(self) -> None:
        synthesizer = ElevenLabsSpeechSynthesizer(
            settings=_settings(speech_mode="elevenlabs", elevenlabs_api_key=None),
        )
        with self.assertRaises(SpeechNotConfigured):
            await synthesizer.synthesize("hola", "voice-es")


class SpeechApiTest(unittest.TestCase):
    def tearDown(self) -> None:
        os.environ["SPEECH_MODE"] = "mock"
        os.environ["SPEECH_VOICES"] = ""

    def test_speech_routes_with_mock_synthesizer(self) -> None:
        os.environ["TRANSLATION_MODE"] = "mock"
        os.environ["SPEECH_MODE"] = "mock"
        os.environ["SPEECH_VOICES"] = "es-ES=voice-es,en-US=voice-en"

        app = create_app()
        with TestClient(app) as client:
            response = client.post("/speech", json={"text": "hola", "lang": "es"})
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.headers["x-voice-id"], "voice-es")
            self.assertTrue(response.headers["content-type"].startswith("audio/mpeg"))
            self.assertEqual(response.content, b"mock-audio:voice-es:hola")

            response = client.post("/speech", json={"text": "  ", "lang": "es"})
            self.assertEqual(response.status_code, 400)

            voices = client.get("/speech/voices").json()
            self.assertEqual(voices["count"], 2)
            self.assertEqual(voices["voices"][0]["voice_id"], "voice-es")

    def test_speech_without_key_is_a_client_error(self) -> None:
        os.environ["TRANSLATION_MODE"] = "mock"
        os.environ["SPEECH_MODE"] = "elevenlabs"
        os.environ["ELEVENLABS_API_KEY"] = ""

        app = create_app()
        with TestClient(app) as client:
            response = client.post("/speech", json={"text": "hola", "lang": "es"})
            self.assertEqual(response.status_code, 400)
            self.assertIn("ELEVENLABS_API_KEY", response.json()["detail"])


if __name__ == "__main__":
    unittest.main()
