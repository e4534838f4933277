from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from backend.app.speech.synthesizers import SpeechNotConfigured, SpeechSynthesisError

router = APIRouter(prefix="/speech", tags=["speech"])


class SpeechRequest(BaseModel):
    text: str
    lang: str = "en"


@router.post("")
async def synthesize_speech(request: Request, body: SpeechRequest) -> Response:
    speech_output = request.app.state.speech_output

    try:
        audio = await speech_output.synthesize(body.text, body.lang)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SpeechNotConfigured as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SpeechSynthesisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return Response(
        content=audio.audio,
        media_type=audio.media_type,
        headers={"Cache-Control": "no-store", "X-Voice-Id": audio.voice_id},
    )


@router.get("/voices")
def get_speech_voices(request: Request) -> dict[str, Any]:
    speech_output = request.app.state.speech_output
    voices = [voice.to_dict() for voice in speech_output.voices]
    return {"voices": voices, "count": len(voices)}
