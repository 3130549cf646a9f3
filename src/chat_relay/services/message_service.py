"""Message store helpers.

Every mutating helper commits its own transaction so a caller holding the
per-pair lock sees the whole change applied or none of it.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.orm import Session

from chat_relay.models.message import Message
from chat_relay.realtime.errors import Forbidden, NotFound

__all__ = [
    "DeletedMessage",
    "create_message",
    "delete_message",
    "get_history",
    "get_message",
    "get_partner_ids",
    "get_undelivered",
    "mark_delivered",
    "mark_seen",
]


@dataclass(frozen=True)
class DeletedMessage:
    """Routing data kept after a hard delete."""

    id: int
    sender_id: int
    receiver_id: int

    def counterpart_of(self, user_id: int) -> int:
        return self.receiver_id if user_id == self.sender_id else self.sender_id


def _pair_clause(user_a: int, user_b: int):
    return or_(
        and_(Message.sender_id == user_a, Message.receiver_id == user_b),
        and_(Message.sender_id == user_b, Message.receiver_id == user_a),
    )


def create_message(
    db: Session,
    sender_id: int,
    receiver_id: int,
    text: str,
    *,
    delivered: bool,
) -> Message:
    """Append a new message and return it with id and timestamp populated."""
    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        text=text,
        delivered=delivered,
        seen=False,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_message(db: Session, message_id: int) -> Message | None:
    return db.get(Message, message_id)


def get_history(db: Session, user_a: int, user_b: int) -> Sequence[Message]:
    """Return the conversation between two users, oldest first."""
    query = (
        select(Message)
        .where(_pair_clause(user_a, user_b))
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return db.scalars(query).all()


def get_partner_ids(db: Session, user_id: int) -> list[int]:
    """Return distinct counterparts of ``user_id``, most recent activity first."""
    counterpart = case(
        (Message.sender_id == user_id, Message.receiver_id),
        else_=Message.sender_id,
    ).label("counterpart")
    query = (
        select(counterpart)
        .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .group_by(counterpart)
        .order_by(func.max(Message.created_at).desc(), func.max(Message.id).desc())
    )
    return [int(row) for row in db.scalars(query)]


def delete_message(db: Session, message_id: int, requester_id: int) -> DeletedMessage:
    """Hard-delete a message the requester sent or received.

    Raises:
        NotFound: The message does not exist (already deleted or never was).
        Forbidden: The requester is neither its sender nor its receiver.
    """
    message = db.get(Message, message_id)
    if message is None:
        raise NotFound(f"message {message_id} not found")
    if requester_id not in (message.sender_id, message.receiver_id):
        raise Forbidden(f"user {requester_id} may not delete message {message_id}")

    deleted = DeletedMessage(message.id, message.sender_id, message.receiver_id)
    db.delete(message)
    db.commit()
    return deleted


def mark_seen(db: Session, current_user_id: int, other_user_id: int) -> list[int]:
    """Flip every unseen message from ``other_user_id`` to ``current_user_id``.

    Seen implies delivered, so both flags are set. Returns the affected ids in
    creation order; an empty list means nothing changed.
    """
    query = (
        select(Message.id)
        .where(
            Message.sender_id == other_user_id,
            Message.receiver_id == current_user_id,
            Message.seen.is_(False),
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    ids = list(db.scalars(query))
    if not ids:
        return []

    db.execute(
        update(Message)
        .where(Message.id.in_(ids))
        .values(seen=True, delivered=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return ids


def get_undelivered(db: Session, receiver_id: int) -> Sequence[Message]:
    """Return messages addressed to ``receiver_id`` not yet delivered, oldest first."""
    query = (
        select(Message)
        .where(Message.receiver_id == receiver_id, Message.delivered.is_(False))
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return db.scalars(query).all()


def mark_delivered(db: Session, message_ids: Sequence[int]) -> None:
    """Set ``delivered`` on the given messages."""
    if not message_ids:
        return
    db.execute(
        update(Message)
        .where(Message.id.in_(list(message_ids)))
        .values(delivered=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
