"""Shared API dependencies for authentication and the real-time core."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from chat_relay.core.security import decode_access_token
from chat_relay.db.session import get_db
from chat_relay.models import User
from chat_relay.realtime.delivery import DeliveryEngine
from chat_relay.realtime.errors import AuthenticationFailure
from chat_relay.realtime.presence import PresenceRegistry
from chat_relay.services import user_service

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        user_id = decode_access_token(credentials.credentials)
    except AuthenticationFailure as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_presence(request: Request) -> PresenceRegistry:
    """Return the presence registry owned by the running application."""
    return request.app.state.presence


def get_delivery_engine(request: Request) -> DeliveryEngine:
    """Return the delivery engine owned by the running application."""
    return request.app.state.delivery


def parse_identity(value: str | None) -> int | None:
    """Parse a user id from a path or query value; None if malformed."""
    if value is None:
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


CurrentUserDep = Annotated[User, Depends(get_current_user)]
PresenceDep = Annotated[PresenceRegistry, Depends(get_presence)]
DeliveryEngineDep = Annotated[DeliveryEngine, Depends(get_delivery_engine)]
