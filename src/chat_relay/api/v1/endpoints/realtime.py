# src/chat_relay/api/v1/endpoints/realtime.py
"""WebSocket endpoint for the live connection."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def live_connection(websocket: WebSocket) -> None:
    """Hand the socket to the application's connection gateway."""
    await websocket.app.state.gateway.serve(websocket)
