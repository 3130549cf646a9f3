"""Connection gateway for the live WebSocket channel.

The gateway authenticates each connection before accepting it, binds it to
the presence registry, routes inbound frames to the delivery engine and keeps
presence consistent when the connection goes away.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, status
from pydantic import ValidationError

from chat_relay.core.security import decode_access_token
from chat_relay.realtime.connection import LiveConnection, WebSocketConnection
from chat_relay.realtime.delivery import DeliveryEngine
from chat_relay.realtime.errors import AuthenticationFailure, DeliveryOutcome, StoreFailure
from chat_relay.realtime.presence import PresenceRegistry
from chat_relay.schemas.events import (
    CONNECTED,
    DELETE_MESSAGE,
    ERROR,
    MARK_SEEN,
    SEND_MESSAGE,
    STOP_TYPING,
    TYPING,
    ConnectedNotice,
    ErrorNotice,
    event_name_of,
    parse_inbound,
)
from chat_relay.services import user_service

logger = logging.getLogger(__name__)

Handler = Callable[[LiveConnection, Any], Awaitable[DeliveryOutcome]]


def extract_token(websocket: WebSocket) -> str | None:
    """Read the credential from ``?token=`` or an ``Authorization: Bearer`` header."""
    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


class ConnectionGateway:
    """Authenticate, register and serve live connections."""

    def __init__(
        self,
        presence: PresenceRegistry,
        engine: DeliveryEngine,
        *,
        flush_backlog: bool = True,
    ) -> None:
        self.presence = presence
        self.engine = engine
        self.store = engine.store
        self.flush_backlog = flush_backlog
        self._handlers: dict[str, Handler] = {
            SEND_MESSAGE: self._on_send_message,
            DELETE_MESSAGE: self._on_delete_message,
            MARK_SEEN: self._on_mark_seen,
            TYPING: self._on_typing,
            STOP_TYPING: self._on_stop_typing,
        }

    async def authenticate(self, token: str | None) -> int:
        """Return the user id carried by ``token``.

        Raises:
            AuthenticationFailure: Token missing, invalid, expired, or naming a
                user that does not exist.
        """
        user_id = decode_access_token(token)
        user = await self.store.run(user_service.get_user, user_id)
        if user is None:
            raise AuthenticationFailure(f"Unknown user {user_id}")
        return user_id

    async def connect(self, connection: LiveConnection) -> None:
        """Make ``connection`` the live connection of its user."""
        replaced = self.presence.bind(connection)
        if replaced is not None and replaced.handle != connection.handle:
            logger.info(
                "User %s reconnected: %s replaces %s",
                connection.user_id,
                connection.handle,
                replaced.handle,
            )
        logger.info("User %s connected: %s", connection.user_id, connection.handle)

        await connection.emit(
            CONNECTED,
            ConnectedNotice(user_id=connection.user_id, handle=connection.handle).to_wire(),
        )
        try:
            await self.store.run(
                user_service.update_live_handle, connection.user_id, connection.handle
            )
            if self.flush_backlog:
                await self.engine.flush_backlog(connection)
        except StoreFailure:
            logger.warning("Connect bookkeeping failed for user %s", connection.user_id)

    async def disconnect(self, connection: LiveConnection) -> None:
        """Drop presence for ``connection`` unless a newer one has taken over."""
        if not self.presence.release(connection.user_id, connection.handle):
            logger.info(
                "Stale disconnect for user %s ignored: %s",
                connection.user_id,
                connection.handle,
            )
            return
        try:
            await self.store.run(
                user_service.clear_live_handle, connection.user_id, connection.handle
            )
        except StoreFailure:
            logger.warning("Could not clear live handle for user %s", connection.user_id)
        logger.info("User %s disconnected: %s", connection.user_id, connection.handle)

    async def serve(self, websocket: WebSocket) -> None:
        """Run one WebSocket session from handshake to disconnect."""
        try:
            user_id = await self.authenticate(extract_token(websocket))
        except AuthenticationFailure as exc:
            logger.info("Socket auth failed: %s", exc)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication error")
            return
        except StoreFailure:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return

        await websocket.accept()
        connection = WebSocketConnection(websocket, user_id)
        await self.connect(connection)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    # Binary frames carry no event envelope.
                    await self._reject(connection, None, "invalid_payload")
                    continue
                await self.dispatch(connection, raw)
        finally:
            await self.disconnect(connection)

    async def dispatch(self, connection: LiveConnection, raw: str) -> DeliveryOutcome | None:
        """Validate and route a single inbound frame.

        Failures are reported to the originating connection as an ``error``
        event; they never close the connection.
        """
        try:
            frame = parse_inbound(raw)
        except ValidationError as exc:
            intent = event_name_of(raw)
            logger.info(
                "Rejected %s frame from user %s (%d errors)",
                intent or "unknown",
                connection.user_id,
                exc.error_count(),
            )
            await self._reject(connection, intent, "invalid_payload")
            return None

        handler = self._handlers[frame.event]
        try:
            outcome = await handler(connection, frame.data)
        except StoreFailure:
            await self._reject(connection, frame.event, "unavailable")
            return None
        except Exception:
            logger.exception("Unhandled error in %s handler for user %s", frame.event, connection.user_id)
            await self._reject(connection, frame.event, "unavailable")
            return None

        if not outcome.ok:
            await self._reject(connection, frame.event, outcome.reason or outcome.status.value)
        return outcome

    async def _reject(self, connection: LiveConnection, intent: str | None, reason: str) -> None:
        await connection.emit(ERROR, ErrorNotice(intent=intent, reason=reason).to_wire())

    async def _on_send_message(self, connection: LiveConnection, data: Any) -> DeliveryOutcome:
        return await self.engine.send(
            connection.user_id, data.receiver_phone, data.text, origin=connection
        )

    async def _on_delete_message(self, connection: LiveConnection, data: Any) -> DeliveryOutcome:
        return await self.engine.delete(data.message_id, connection.user_id, origin=connection)

    async def _on_mark_seen(self, connection: LiveConnection, data: Any) -> DeliveryOutcome:
        return await self.engine.mark_seen(connection.user_id, data.other_user_id)

    async def _on_typing(self, connection: LiveConnection, data: Any) -> DeliveryOutcome:
        return await self.engine.typing(connection.user_id, data.receiver_id)

    async def _on_stop_typing(self, connection: LiveConnection, data: Any) -> DeliveryOutcome:
        return await self.engine.typing(connection.user_id, data.receiver_id, stop=True)
