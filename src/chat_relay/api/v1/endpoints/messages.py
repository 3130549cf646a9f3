# src/chat_relay/api/v1/endpoints/messages.py
"""REST fallback for conversation history and read receipts.

These handlers back page loads and reconnects. They always answer with a
well-typed value: an empty list or ``{"success": false}`` rather than an
error page.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query
from sqlalchemy.exc import SQLAlchemyError

from chat_relay.api.v1.dependencies import DeliveryEngineDep, SessionDep, parse_identity
from chat_relay.realtime.errors import StoreFailure
from chat_relay.schemas.message import MarkSeenRequest, MarkSeenResponse, MessagePayload
from chat_relay.services import message_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/mark-seen", response_model=MarkSeenResponse)
async def mark_seen(payload: MarkSeenRequest, engine: DeliveryEngineDep) -> MarkSeenResponse:
    """Mark messages from ``otherId`` to ``userId`` as seen.

    Goes through the delivery engine so a connected sender still gets the
    live ``messageSeen`` notice.
    """
    try:
        await engine.mark_seen(payload.user_id, payload.other_id)
    except StoreFailure:
        return MarkSeenResponse(success=False)
    return MarkSeenResponse(success=True)


@router.get("/{other_user_id}", response_model=list[MessagePayload])
def get_history(
    other_user_id: str,
    db: SessionDep,
    current_user_id: str | None = Query(None, alias="currentUserId"),
) -> list[MessagePayload]:
    """Return the conversation between two users, oldest first."""
    other_id = parse_identity(other_user_id)
    current_id = parse_identity(current_user_id)
    if other_id is None or current_id is None:
        return []

    try:
        messages = message_service.get_history(db, current_id, other_id)
    except SQLAlchemyError:
        logger.exception("History lookup failed for %s/%s", current_id, other_id)
        return []
    return [MessagePayload.model_validate(message) for message in messages]
