# src/chat_relay/api/v1/endpoints/chats.py
"""Chat-partner listing."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from chat_relay.api.v1.dependencies import PresenceDep, SessionDep, parse_identity
from chat_relay.core.settings import settings
from chat_relay.schemas.user import UserSummary
from chat_relay.services import message_service, user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("/{user_id}", response_model=list[UserSummary])
def list_chat_partners(user_id: str, db: SessionDep, presence: PresenceDep) -> list[UserSummary]:
    """Return the people ``user_id`` has talked to, most recent first.

    A user with no conversations gets a small sample of other users instead.
    """
    current_id = parse_identity(user_id)
    if current_id is None:
        return []

    try:
        partner_ids = message_service.get_partner_ids(db, current_id)
        if partner_ids:
            users = user_service.get_users_by_ids(db, partner_ids)
        else:
            users = list(user_service.sample_users(db, current_id, settings.discovery_sample_size))
    except SQLAlchemyError:
        logger.exception("Chat list lookup failed for user %s", current_id)
        return []

    return [
        UserSummary.model_validate(user).model_copy(update={"online": presence.is_present(user.id)})
        for user in users
    ]
