# watchparty/services/connection_manager.py

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================


class ConnectionManager:
    """
    Tracks live WebSocket connections by connection id and delivers frames.

    Room membership lives in the RoomStore; this class only knows which
    socket belongs to which id, so the relay can turn a list of member ids
    into actual sends.

    Data Structures:
        connections: Maps connection_id -> WebSocket
                     Example: {"9b2c...": websocket1}

    Delivery is best effort. A send that fails is logged and skipped; the
    socket's own receive loop notices the closed connection and runs the
    disconnect cleanup.
    """

    def __init__(self) -> None:
        self.connections: Dict[str, WebSocket] = {}

    def __len__(self) -> int:
        return len(self.connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self.connections

    async def connect(self, websocket: WebSocket) -> str:
        """
        Accept a new WebSocket connection and assign it an id.

        Returns:
            The connection id, valid until disconnect()
        """
        await websocket.accept()

        connection_id = uuid.uuid4().hex
        self.connections[connection_id] = websocket

        logger.info("✓ Connection %s opened. Total: %d", connection_id, len(self.connections))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self.connections.pop(connection_id, None) is not None:
            logger.info("✗ Connection %s closed. Total: %d", connection_id, len(self.connections))

    async def send(self, connection_id: str, event: str, data) -> bool:
        """
        Send one frame to a single connection.

        Args:
            connection_id: Target connection
            event: Outbound event name
            data: JSON-serialisable payload

        Returns:
            True if the frame was handed to the socket, False if the id is
            unknown or the send failed
        """
        websocket = self.connections.get(connection_id)
        if websocket is None:
            logger.debug("[routing] Skipped %s: connection %s is gone", event, connection_id)
            return False

        try:
            await websocket.send_json({"event": event, "data": data})
        except Exception as e:
            logger.error("Send error to %s: %s", connection_id, e)
            return False
        return True

    async def send_many(
        self,
        connection_ids: Iterable[str],
        event: str,
        data,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Fan a frame out to several connections.

        Returns:
            Number of connections the frame was delivered to
        """
        delivered = 0
        for connection_id in connection_ids:
            if connection_id == exclude:
                continue
            if await self.send(connection_id, event, data):
                delivered += 1
        return delivered
