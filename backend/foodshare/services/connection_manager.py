"""WebSocket connection registry."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import WebSocket, status

logger = logging.getLogger(__name__)


def user_channel(user_id: int) -> str:
    return f"user-{user_id}"


class ConnectionManager:
    """Tracks WebSocket connections per channel and fans messages out to them."""

    MAX_CONNECTIONS_PER_CHANNEL = 100

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self.connection_metadata: Dict[int, Dict[str, Any]] = {}

    async def connect(
        self,
        websocket: WebSocket,
        channel: str,
        user_id: Optional[int] = None,
        accept: bool = True,
    ) -> bool:
        """Register ``websocket`` on ``channel``. Returns False if the channel is full."""
        if len(self.active_connections.get(channel, [])) >= self.MAX_CONNECTIONS_PER_CHANNEL:
            logger.warning(f"WebSocket connection rejected: channel '{channel}' at capacity")
            if accept:
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return False

        if accept:
            await websocket.accept()

        self.active_connections.setdefault(channel, []).append(websocket)
        now = datetime.now(timezone.utc)
        self.connection_metadata[id(websocket)] = {
            "connected_at": now,
            "user_id": user_id,
            "channel": channel,
            "last_ping": now,
        }
        logger.debug(f"WebSocket connected to channel '{channel}', user_id={user_id}")
        return True

    def disconnect(self, websocket: WebSocket, channel: str) -> None:
        connections = self.active_connections.get(channel)
        if connections and websocket in connections:
            connections.remove(websocket)
            if not connections:
                del self.active_connections[channel]
        self.connection_metadata.pop(id(websocket), None)
        logger.debug(f"WebSocket disconnected from channel '{channel}'")

    def update_ping(self, websocket: WebSocket) -> None:
        meta = self.connection_metadata.get(id(websocket))
        if meta is not None:
            meta["last_ping"] = datetime.now(timezone.utc)

    async def send(self, message: Dict[str, Any], channel: str) -> int:
        """Send ``message`` to every socket on ``channel``; returns how many got it."""
        delivered = 0
        disconnected = []
        for connection in list(self.active_connections.get(channel, [])):
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug(f"WebSocket send failed: {e}")
                disconnected.append(connection)

        for conn in disconnected:
            self.disconnect(conn, channel)
        return delivered

    def get_connection_count(self, channel: Optional[str] = None) -> int:
        if channel:
            return len(self.active_connections.get(channel, []))
        return sum(len(conns) for conns in self.active_connections.values())
