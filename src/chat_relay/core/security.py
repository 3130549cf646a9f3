"""Credential helpers: password hashing and signed access tokens."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import nacl.pwhash
from jose import JWTError, jwt
from nacl.exceptions import InvalidkeyError

from chat_relay.core.settings import settings
from chat_relay.realtime.errors import AuthenticationFailure


def hash_password(password: str) -> str:
    """Return an argon2id hash of ``password`` suitable for storage."""
    return nacl.pwhash.str(password.encode("utf-8")).decode("ascii")


def verify_password(password_hash: str, password: str) -> bool:
    """Return True if ``password`` matches the stored hash."""
    try:
        return nacl.pwhash.verify(password_hash.encode("ascii"), password.encode("utf-8"))
    except (InvalidkeyError, ValueError):
        return False


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT whose subject is the user's identity id."""
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode: dict[str, object] = {"sub": str(user_id), "exp": expire}
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str | None) -> int:
    """Verify signature and expiry of ``token`` and return the embedded user id.

    Raises:
        AuthenticationFailure: If the token is missing, invalid, expired or its
            subject is not an integer identity id.
    """
    if not token:
        raise AuthenticationFailure("No token provided")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise AuthenticationFailure("Could not validate credentials") from err

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as err:
        raise AuthenticationFailure("Malformed token subject") from err
