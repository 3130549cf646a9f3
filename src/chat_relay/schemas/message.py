# src/chat_relay/schemas/message.py
"""Message-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, field_validator

from chat_relay.db.time import as_utc

from .common import WireModel


class MessagePayload(WireModel):
    """A stored message as delivered to clients."""

    id: int
    sender_id: int
    receiver_id: int
    text: str
    created_at: datetime
    delivered: bool
    seen: bool

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)


class MarkSeenRequest(WireModel):
    """Body of the HTTP mark-seen fallback."""

    user_id: int
    other_id: int


class MarkSeenResponse(BaseModel):
    success: bool
