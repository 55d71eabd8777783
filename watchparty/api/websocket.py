# watchparty/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from watchparty.core.state import AppState

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for the room relay.

    Protocol:
    =========
    Every frame, in both directions, is {"event": "<name>", "data": <payload>}.

    Client -> Server Events:
    ------------------------
    join-room   {"roomId": "1f3a9c2e", "displayName": "alice"}
    leave-room  {"roomId": "1f3a9c2e"}
    signal      {"to": "<connectionId>", "data": <opaque>}
    chat        {"roomId": "1f3a9c2e", "message": "hi", "displayName": "alice"}
    playback    {"roomId": "1f3a9c2e", "action": "pause", "time": 12.5}
    set-media   {"roomId": "1f3a9c2e", "media": {"kind": "youtube", "locator": "abc"}}

    Server -> Client Events:
    ------------------------
    connected     {"connectionId": "..."}             sent once, right after accept
    user-joined   {"connectionId": "...", "displayName": "..."}
    room-users    [{"connectionId": "...", "displayName": "..."}, ...]
    media-update  {"kind": "...", "locator": "..."} or null
    signal        {"from": "<connectionId>", "data": <opaque>}
    chat          {"message": "...", "displayName": "...", "timestamp": <epoch ms>}
    playback      {"action": "...", "time": 12.5}

    Lifecycle:
    ==========
    1. Connection accepted and assigned an id, announced with "connected"
    2. Client sends join-room for the rooms it wants
    3. On disconnect it is removed from every room and each room gets room-users

    Error Handling:
        - Binary frames, invalid JSON, unknown events, malformed payloads: dropped, logged
        - A handler that raises: logged with traceback, loop keeps going
        - Connection errors: cleanup and log
    """
    state: AppState = websocket.app.state.watchparty
    relay = state.relay

    connection_id = await state.connection_manager.connect(websocket)
    await state.connection_manager.send(connection_id, "connected", {"connectionId": connection_id})

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            data = message.get("text")
            if data is None:
                logger.warning("Dropping non-text frame from %s", connection_id)
                continue

            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Dropping invalid JSON from %s", connection_id)
                continue

            logger.debug("Websocket input from %s: %s", connection_id, frame)

            try:
                await relay.dispatch(connection_id, frame)
            except Exception:
                logger.exception("Error handling frame from %s", connection_id)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error on %s: %s", connection_id, e)
    finally:
        await relay.disconnect(connection_id)
