"""Tagged frame schemas for the live connection.

Every frame in either direction is a JSON object ``{"event": <name>, "data":
{...}}``. Inbound frames are validated against a discriminated union keyed by
``event`` so each intent gets its own required fields.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from chat_relay.core.settings import settings

from .common import WireModel

# Client -> server
SEND_MESSAGE = "sendMessage"
DELETE_MESSAGE = "deleteMessage"
MARK_SEEN = "markSeen"
TYPING = "typing"
STOP_TYPING = "stopTyping"

# Server -> client
RECEIVE_MESSAGE = "receiveMessage"
MESSAGE_DELETED = "messageDeleted"
MESSAGE_SEEN = "messageSeen"
MESSAGE_DELIVERED = "messageDelivered"
CONNECTED = "connected"
ERROR = "error"


class SendMessageData(WireModel):
    receiver_phone: str = Field(..., min_length=1, max_length=32)
    text: str = Field(..., min_length=1, max_length=settings.message_max_length)


class DeleteMessageData(WireModel):
    message_id: int
    # Ignored; the counterpart is read from the stored message.
    receiver_id: int | None = None


class MarkSeenData(WireModel):
    other_user_id: int
    # Ignored; the reader is always the authenticated connection.
    user_id: int | None = None


class TypingData(WireModel):
    receiver_id: int


class _Frame(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SendMessageFrame(_Frame):
    event: Literal["sendMessage"]
    data: SendMessageData


class DeleteMessageFrame(_Frame):
    event: Literal["deleteMessage"]
    data: DeleteMessageData


class MarkSeenFrame(_Frame):
    event: Literal["markSeen"]
    data: MarkSeenData


class TypingFrame(_Frame):
    event: Literal["typing"]
    data: TypingData


class StopTypingFrame(_Frame):
    event: Literal["stopTyping"]
    data: TypingData


InboundFrame = Annotated[
    Union[SendMessageFrame, DeleteMessageFrame, MarkSeenFrame, TypingFrame, StopTypingFrame],
    Field(discriminator="event"),
]

inbound_frame_adapter: TypeAdapter[InboundFrame] = TypeAdapter(InboundFrame)


def parse_inbound(raw: str) -> InboundFrame:
    """Validate a raw text frame; raises ``pydantic.ValidationError``."""
    return inbound_frame_adapter.validate_json(raw)


def event_name_of(raw: str) -> str | None:
    """Best-effort extraction of the event name from an invalid frame."""
    try:
        probe = TypeAdapter(dict[str, Any]).validate_json(raw)
    except ValueError:
        return None
    event = probe.get("event")
    return event if isinstance(event, str) else None


# Server -> client payloads


class MessageRef(WireModel):
    message_id: int


class SeenNotice(WireModel):
    message_ids: list[int]


class TypingNotice(WireModel):
    sender_id: int


class ConnectedNotice(WireModel):
    user_id: int
    handle: str


class ErrorNotice(WireModel):
    intent: str | None = None
    reason: str
