from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from backend.app.languages import LANGUAGES

router = APIRouter(tags=["languages"])


@router.get("/languages")
def get_languages() -> dict[str, Any]:
    languages = [language.to_dict() for language in LANGUAGES]
    return {"languages": languages, "count": len(languages)}
