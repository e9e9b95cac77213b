"""Active-connection bookkeeping for live crisis sessions."""

from __future__ import annotations

import logging
import secrets

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

CONNECTION_ID_BYTES = 8


def generate_connection_id() -> str:
    """Generate an opaque URL-safe connection identifier."""
    return secrets.token_urlsafe(CONNECTION_ID_BYTES)


def is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class ConnectionRegistry:
    """The set of currently open WebSocket connections, keyed by connection id.

    Owned by one application instance. All mutation happens on the event loop
    thread, so no locking is done here.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        return self.register(websocket)

    def register(self, websocket: WebSocket) -> str:
        connection_id = generate_connection_id()
        while connection_id in self._connections:
            connection_id = generate_connection_id()
        self._connections[connection_id] = websocket
        logger.debug("connection %s opened (%d active)", connection_id, len(self._connections))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.debug("connection %s closed (%d active)", connection_id, len(self._connections))

    def snapshot(self) -> list[tuple[str, WebSocket]]:
        return list(self._connections.items())

    def connection_ids(self) -> set[str]:
        return set(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    async def close_all(self, code: int = 1001) -> None:
        connections = self.snapshot()
        self._connections.clear()
        for connection_id, websocket in connections:
            if not is_open(websocket):
                continue
            try:
                await websocket.close(code=code)
            except RuntimeError:
                logger.debug("connection %s already gone at shutdown", connection_id)
        if connections:
            logger.info("closed %d live connection(s)", len(connections))
