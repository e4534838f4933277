from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend.app.ratelimit.store import client_key_from_forwarded
from backend.app.translation.gateway import (
    RateLimitExceeded,
    TranslationFailed,
    TranslationValidationError,
)

router = APIRouter(tags=["translations"])


@router.post("/translate")
async def translate(request: Request) -> JSONResponse:
    gateway = request.app.state.translation_gateway
    client_key = client_key_from_forwarded(request.headers.get("x-forwarded-for"))

    try:
        payload: Any = await request.json()
    except ValueError:
        payload = None

    try:
        result = await gateway.handle(payload, client_key)
    except RateLimitExceeded:
        return JSONResponse(status_code=429, content={"error": "Rate limit"})
    except TranslationValidationError:
        return JSONResponse(status_code=400, content={"error": "Bad request"})
    except TranslationFailed:
        return JSONResponse(status_code=500, content={"error": "Translate failed"})

    return JSONResponse(status_code=200, content=result.to_dict())


@router.get("/translations/status")
def get_translation_status(request: Request) -> dict[str, Any]:
    translation_gateway = request.app.state.translation_gateway
    return translation_gateway.snapshot()
