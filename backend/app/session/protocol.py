from __future__ import annotations

import json
from typing import Any

from backend.app.recognition.types import RecognitionEvent
from backend.app.session.coordinator import SessionConfig
from backend.app.session.manager import ClientSession, SessionManager


async def handle_client_text(manager: SessionManager, client: ClientSession, raw: str) -> None:
    try:
        message = json.loads(raw)
    except ValueError:
        await _reject(manager, client, "invalid_message", "Message must be JSON.")
        return
    await handle_client_message(manager, client, message)


async def handle_client_message(
    manager: SessionManager,
    client: ClientSession,
    message: Any,
) -> None:
    session = client.session
    if session is None:
        return

    if not isinstance(message, dict):
        await _reject(manager, client, "invalid_message", "Message must be a JSON object.")
        return

    kind = message.get("type")
    if kind == "start":
        base = session.default_config()
        max_alternatives = message.get("maxAlternatives")
        try:
            config = SessionConfig(
                source_lang=str(message.get("sourceLang") or base.source_lang),
                target_lang=str(message.get("targetLang") or base.target_lang),
                reconcile_mode=str(message.get("mode") or base.reconcile_mode),
                max_alternatives=int(max_alternatives) if max_alternatives is not None else None,
            )
        except (TypeError, ValueError) as exc:
            await _reject(manager, client, "invalid_start", str(exc))
            return
        await session.start(config)
    elif kind == "stop":
        await session.stop()
    elif kind == "result":
        try:
            event = RecognitionEvent.from_payload(message)
        except (TypeError, ValueError) as exc:
            await _reject(manager, client, "invalid_result", str(exc))
            return
        client.channel.push_event(event)
    elif kind == "error":
        client.channel.push_error(str(message.get("error") or "unknown"))
    elif kind == "end":
        client.channel.push_end()
    elif kind == "text":
        await session.set_text(str(message.get("text") or ""))
    elif kind == "languages":
        await session.set_languages(message.get("sourceLang"), message.get("targetLang"))
    elif kind == "speak":
        session.speak()
    else:
        await _reject(manager, client, "unsupported_message", f"Unsupported message type: {kind}")


async def _reject(manager: SessionManager, client: ClientSession, code: str, message: str) -> None:
    await manager.publish(
        client.client_id,
        "notice",
        {"level": "warning", "code": code, "message": message},
    )
