"""Delivery engine: the message state machine.

A message moves ``created -> delivered -> seen`` and may be deleted from any
state. Every intent persists first and emits afterwards; emits only reach
users the presence registry currently holds. A message only counts as
delivered once an emit to the recipient has actually succeeded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from chat_relay.realtime.connection import LiveConnection
from chat_relay.realtime.errors import DeliveryOutcome, Forbidden, NotFound
from chat_relay.realtime.presence import PresenceRegistry
from chat_relay.realtime.store import SessionRunner
from chat_relay.schemas.events import (
    MESSAGE_DELETED,
    MESSAGE_DELIVERED,
    MESSAGE_SEEN,
    RECEIVE_MESSAGE,
    STOP_TYPING,
    TYPING,
    MessageRef,
    SeenNotice,
    TypingNotice,
)
from chat_relay.schemas.message import MessagePayload
from chat_relay.services import message_service, user_service

logger = logging.getLogger(__name__)


@dataclass
class _PairLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class DeliveryEngine:
    """Apply chat intents to the store and fan out the resulting events."""

    def __init__(self, presence: PresenceRegistry, store: SessionRunner) -> None:
        self.presence = presence
        self.store = store
        self._pair_locks: dict[frozenset[int], _PairLock] = {}

    @asynccontextmanager
    async def _pair_lock(self, user_a: int, user_b: int) -> AsyncIterator[None]:
        """Serialize store work for one conversation.

        The entry is dropped once nobody holds or awaits it, so the map only
        covers conversations with work in flight.
        """
        key = frozenset((user_a, user_b))
        entry = self._pair_locks.get(key)
        if entry is None:
            entry = self._pair_locks[key] = _PairLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._pair_locks[key]

    def _own_connection(
        self, user_id: int, origin: LiveConnection | None
    ) -> LiveConnection | None:
        return origin if origin is not None else self.presence.get(user_id)

    async def _emit_to_user(self, user_id: int, event: str, data: dict) -> bool:
        connection = self.presence.get(user_id)
        if connection is None:
            return False
        return await connection.emit(event, data)

    async def send(
        self,
        sender_id: int,
        receiver_phone: str,
        text: str,
        *,
        origin: LiveConnection | None = None,
    ) -> DeliveryOutcome:
        """Persist a new message and deliver it to whoever is online.

        The row is written undelivered and flipped only after the recipient's
        connection accepted the push; a dead socket leaves it for the backlog.
        """
        receiver = await self.store.run(user_service.get_user_by_phone, receiver_phone)
        if receiver is None:
            logger.info("Dropping message from user %s: no user with phone %r", sender_id, receiver_phone)
            return DeliveryOutcome.not_found("recipient_not_found")

        async with self._pair_lock(sender_id, receiver.id):
            recipient_conn = self.presence.get(receiver.id)
            message = await self.store.run(
                message_service.create_message,
                sender_id,
                receiver.id,
                text,
                delivered=False,
            )

        payload = MessagePayload.model_validate(message)
        pushed = payload.model_copy(update={"delivered": True}).to_wire()
        own = self._own_connection(sender_id, origin)
        same_socket = (
            recipient_conn is not None and own is not None and recipient_conn.handle == own.handle
        )

        delivered = False
        if recipient_conn is not None:
            delivered = await recipient_conn.emit(RECEIVE_MESSAGE, pushed)
            if delivered:
                await self.store.run(message_service.mark_delivered, [message.id])
                message.delivered = True
            else:
                logger.info("Push of message %s to user %s failed; left for backlog", message.id, receiver.id)
        if own is not None and not same_socket:
            await own.emit(RECEIVE_MESSAGE, pushed if delivered else payload.to_wire())
        if delivered and own is not None:
            await own.emit(MESSAGE_DELIVERED, MessageRef(message_id=message.id).to_wire())

        logger.debug(
            "Message %s from %s to %s (delivered=%s)",
            message.id,
            sender_id,
            receiver.id,
            delivered,
        )
        return DeliveryOutcome.accepted(message=message)

    async def delete(
        self,
        message_id: int,
        requester_id: int,
        *,
        origin: LiveConnection | None = None,
    ) -> DeliveryOutcome:
        """Hard-delete a message owned by the requester's conversation.

        Deleting an id that is already gone is a no-op.
        """
        message = await self.store.run(message_service.get_message, message_id)
        if message is None:
            return DeliveryOutcome.noop()

        async with self._pair_lock(message.sender_id, message.receiver_id):
            try:
                deleted = await self.store.run(
                    message_service.delete_message, message_id, requester_id
                )
            except NotFound:
                return DeliveryOutcome.noop()
            except Forbidden:
                logger.warning("User %s tried to delete message %s", requester_id, message_id)
                return DeliveryOutcome.forbidden()

        notice = MessageRef(message_id=deleted.id).to_wire()
        counterpart = deleted.counterpart_of(requester_id)
        if counterpart != requester_id:
            await self._emit_to_user(counterpart, MESSAGE_DELETED, notice)
        own = self._own_connection(requester_id, origin)
        if own is not None:
            await own.emit(MESSAGE_DELETED, notice)
        return DeliveryOutcome.accepted(message_ids=(deleted.id,))

    async def mark_seen(self, current_user_id: int, other_user_id: int) -> DeliveryOutcome:
        """Mark everything ``other_user_id`` sent to ``current_user_id`` as seen."""
        async with self._pair_lock(current_user_id, other_user_id):
            ids = await self.store.run(message_service.mark_seen, current_user_id, other_user_id)
        if not ids:
            return DeliveryOutcome.noop()

        await self._emit_to_user(other_user_id, MESSAGE_SEEN, SeenNotice(message_ids=ids).to_wire())
        return DeliveryOutcome.accepted(message_ids=tuple(ids))

    async def typing(self, sender_id: int, receiver_id: int, *, stop: bool = False) -> DeliveryOutcome:
        """Relay an ephemeral typing signal; nothing is stored."""
        if sender_id == receiver_id:
            return DeliveryOutcome.noop()
        event = STOP_TYPING if stop else TYPING
        sent = await self._emit_to_user(receiver_id, event, TypingNotice(sender_id=sender_id).to_wire())
        return DeliveryOutcome.accepted() if sent else DeliveryOutcome.noop()

    async def flush_backlog(self, connection: LiveConnection) -> list[int]:
        """Push undelivered messages to a fresh connection and acknowledge them.

        Only messages the connection actually accepted are flipped to
        delivered. Returns their ids.
        """
        backlog = await self.store.run(message_service.get_undelivered, connection.user_id)
        pushed = []
        for message in backlog:
            payload = MessagePayload.model_validate(message).model_copy(update={"delivered": True})
            if not await connection.emit(RECEIVE_MESSAGE, payload.to_wire()):
                break
            pushed.append(message)
        if not pushed:
            return []

        await self.store.run(message_service.mark_delivered, [message.id for message in pushed])
        for message in pushed:
            await self._emit_to_user(
                message.sender_id,
                MESSAGE_DELIVERED,
                MessageRef(message_id=message.id).to_wire(),
            )
        logger.info("Flushed %d queued messages to user %s", len(pushed), connection.user_id)
        return [message.id for message in pushed]
