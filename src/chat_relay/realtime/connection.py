"""Live-connection handles."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class LiveConnection(Protocol):
    """Anything the presence registry can address by handle."""

    user_id: int
    handle: str

    async def emit(self, event: str, data: Any) -> bool:
        """Send one event frame; return False if the peer is gone."""
        ...


class WebSocketConnection:
    """A FastAPI WebSocket bound to an authenticated user."""

    def __init__(self, websocket: WebSocket, user_id: int, handle: str | None = None) -> None:
        self.websocket = websocket
        self.user_id = user_id
        self.handle = handle or uuid.uuid4().hex

    async def emit(self, event: str, data: Any) -> bool:
        try:
            await self.websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.debug("Emit %s to %s failed: %s", event, self.handle, exc)
            return False
        return True

    def __repr__(self) -> str:
        return f"<WebSocketConnection user={self.user_id} handle={self.handle}>"
