# src/chat_relay/api/v1/endpoints/users.py
"""User lookup endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from chat_relay.api.v1.dependencies import CurrentUserDep, PresenceDep, SessionDep
from chat_relay.schemas.user import UserSummary
from chat_relay.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


def _summary(user, presence) -> UserSummary:
    return UserSummary.model_validate(user).model_copy(
        update={"online": presence.is_present(user.id)}
    )


@router.get("/me", response_model=UserSummary)
def read_me(current_user: CurrentUserDep, presence: PresenceDep) -> UserSummary:
    """Return the authenticated user's profile."""
    return _summary(current_user, presence)


@router.get("/by-phone/{phone}", response_model=UserSummary)
def find_by_phone(phone: str, db: SessionDep, presence: PresenceDep) -> UserSummary:
    """Resolve a phone number to a user before starting a chat."""
    user = user_service.get_user_by_phone(db, phone)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return _summary(user, presence)
