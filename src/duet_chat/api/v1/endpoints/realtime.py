"""WebSocket endpoint streaming live query snapshots.

Client frames::

    {"action": "subscribe", "id": "c1", "query": "messages", "params": {"chat_id": "..."}}
    {"action": "unsubscribe", "id": "c1"}

Server frames::

    {"type": "snapshot", "id": "c1", "data": [...]}
    {"type": "error", "id": "c1", "detail": "..."}
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from duet_chat.core.errors import ChatServiceError
from duet_chat.services.live_queries import build_query
from duet_chat.services.realtime import Unsubscribe

from ..dependencies import HubDep, SessionDep, resolve_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _pump(websocket: WebSocket, outbox: asyncio.Queue[dict[str, Any]]) -> None:
    while True:
        frame = await outbox.get()
        await websocket.send_json(frame)


@router.websocket("/realtime")
async def realtime(
    websocket: WebSocket,
    db: SessionDep,
    hub: HubDep,
    token: str = Query(""),
) -> None:
    """Multiplex live query subscriptions over one socket."""
    await websocket.accept()
    user = resolve_user(db, token) if token else None
    if user is None:
        await websocket.send_json({"type": "error", "id": None, "detail": "Could not validate credentials"})
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    subscriptions: dict[str, Unsubscribe] = {}

    def emit(frame: dict[str, Any]) -> None:
        loop.call_soon_threadsafe(outbox.put_nowait, frame)

    def subscribe(sub_id: str, name: str, params: dict[str, Any]) -> None:
        previous = subscriptions.pop(sub_id, None)
        if previous is not None:
            previous()
        try:
            query = build_query(db, name, params, user.id)
        except ChatServiceError as exc:
            emit({"type": "error", "id": sub_id, "detail": exc.detail})
            return

        def on_snapshot(data: list[Any]) -> None:
            emit({"type": "snapshot", "id": sub_id, "data": data})

        def on_error(exc: Exception) -> None:
            emit({"type": "error", "id": sub_id, "detail": "Live query failed"})

        subscriptions[sub_id] = hub.listen(query, on_snapshot, on_error, db=db)

    sender = asyncio.create_task(_pump(websocket, outbox))
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                emit({"type": "error", "id": None, "detail": "Frames must be JSON objects"})
                continue
            if not isinstance(frame, dict):
                emit({"type": "error", "id": None, "detail": "Frames must be JSON objects"})
                continue

            sub_id = frame.get("id")
            action = frame.get("action")
            if not isinstance(sub_id, str) or not sub_id:
                emit({"type": "error", "id": None, "detail": "Subscription id is required"})
            elif action == "subscribe":
                params = frame.get("params") or {}
                subscribe(sub_id, str(frame.get("query", "")), params if isinstance(params, dict) else {})
            elif action == "unsubscribe":
                unsubscribe = subscriptions.pop(sub_id, None)
                if unsubscribe is not None:
                    unsubscribe()
            else:
                emit({"type": "error", "id": sub_id, "detail": f"Unknown action: {action}"})
    except WebSocketDisconnect:
        logger.debug("Realtime socket closed for %s", user.id)
    finally:
        sender.cancel()
        for unsubscribe in subscriptions.values():
            unsubscribe()
        subscriptions.clear()
