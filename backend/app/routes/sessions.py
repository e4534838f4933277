from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from backend.app.ratelimit.store import client_key_from_forwarded
from backend.app.session.protocol import handle_client_text

router = APIRouter(tags=["sessions"])


@router.get("/sessions/status")
def get_sessions_status(request: Request) -> dict[str, Any]:
    session_manager = request.app.state.session_manager
    return session_manager.snapshot()


@router.websocket("/ws/session")
async def session_websocket(websocket: WebSocket) -> None:
    session_manager = websocket.app.state.session_manager
    client_key = client_key_from_forwarded(websocket.headers.get("x-forwarded-for"))
    client = await session_manager.connect(websocket, client_key)

    try:
        while True:
            raw = await websocket.receive_text()
            await handle_client_text(session_manager, client, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await session_manager.disconnect(client.client_id)
