from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def get_health(request: Request) -> dict[str, Any]:
    settings = request.app.state.settings
    started_at = request.app.state.started_at
    gateway = request.app.state.translation_gateway
    session_snapshot = request.app.state.session_manager.snapshot()
    now = datetime.now(timezone.utc)
    uptime_seconds = max(0.0, (now - started_at).total_seconds())

    return {
        "status": "ok",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "started_at": started_at.isoformat(),
        "uptime_seconds": round(uptime_seconds, 3),
        "checks": {
            "translation_mode": settings.translation_mode,
            "translation_provider": gateway.provider_name,
            "translation_key_configured": settings.translation_key_configured,
            "speech_mode": settings.speech_mode,
            "speech_key_configured": settings.speech_key_configured,
            "rate_limit_enabled": settings.rate_limit_enabled,
            "sessions_running": session_snapshot["running"],
            "connected_sessions": session_snapshot["connected_clients"],
        },
    }
