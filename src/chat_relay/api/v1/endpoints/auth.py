# src/chat_relay/api/v1/endpoints/auth.py
"""Authentication endpoints: registration and login."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from chat_relay.api.v1.dependencies import PresenceDep, SessionDep
from chat_relay.core.security import create_access_token
from chat_relay.schemas.user import LoginRequest, LoginResponse, RegisterRequest, UserSummary
from chat_relay.services import user_service

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/register",
    summary="Register a new user",
    status_code=status.HTTP_201_CREATED,
    response_model=UserSummary,
)
def register_user(payload: RegisterRequest, db: SessionDep) -> UserSummary:
    """Create a user addressable by phone number."""
    try:
        user = user_service.create_user(db, payload)
    except user_service.PhoneAlreadyRegistered as err:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Phone number already registered",
        ) from err
    return UserSummary.model_validate(user)


@router.post("/login", summary="Exchange phone and password for a token", response_model=LoginResponse)
def login(payload: LoginRequest, db: SessionDep, presence: PresenceDep) -> LoginResponse:
    """Issue a signed access token for the live connection and REST calls."""
    user = user_service.authenticate(db, payload.phone, payload.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid phone or password",
        )
    summary = UserSummary.model_validate(user).model_copy(
        update={"online": presence.is_present(user.id)}
    )
    return LoginResponse(token=create_access_token(user.id), user=summary)
