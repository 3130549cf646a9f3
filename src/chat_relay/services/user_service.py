"""Identity store helpers for user records."""
from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chat_relay.core import security
from chat_relay.models.user import User
from chat_relay.schemas.user import RegisterRequest

__all__ = [
    "PhoneAlreadyRegistered",
    "authenticate",
    "clear_all_live_handles",
    "clear_live_handle",
    "create_user",
    "get_user",
    "get_user_by_phone",
    "get_users_by_ids",
    "sample_users",
    "update_live_handle",
]


class PhoneAlreadyRegistered(ValueError):
    """Raised when registering a phone number that is already taken."""


def get_user(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key."""
    return db.get(User, user_id)


def get_user_by_phone(db: Session, phone: str) -> User | None:
    """Return the user owning ``phone``, if any."""
    return db.scalars(select(User).where(User.phone == phone.strip())).first()


def get_users_by_ids(db: Session, user_ids: Iterable[int]) -> list[User]:
    """Return users for ``user_ids`` in the order the ids were given."""
    ids = list(user_ids)
    if not ids:
        return []
    found = {user.id: user for user in db.scalars(select(User).where(User.id.in_(ids)))}
    return [found[user_id] for user_id in ids if user_id in found]


def sample_users(db: Session, exclude_id: int, limit: int) -> Sequence[User]:
    """Return up to ``limit`` users other than ``exclude_id`` in random order."""
    if limit <= 0:
        return []
    query = select(User).where(User.id != exclude_id).order_by(func.random()).limit(limit)
    return db.scalars(query).all()


def create_user(db: Session, payload: RegisterRequest) -> User:
    """Persist a new user with a hashed password."""
    if get_user_by_phone(db, payload.phone) is not None:
        raise PhoneAlreadyRegistered(payload.phone)

    db_user = User(
        name=payload.name,
        phone=payload.phone,
        password_hash=security.hash_password(payload.password),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise PhoneAlreadyRegistered(payload.phone) from err
    db.refresh(db_user)
    return db_user


def authenticate(db: Session, phone: str, password: str) -> User | None:
    """Return the user if ``password`` matches, otherwise None."""
    user = get_user_by_phone(db, phone)
    if user is None or not security.verify_password(user.password_hash, password):
        return None
    return user


def update_live_handle(db: Session, user_id: int, handle: str) -> None:
    """Record ``handle`` as the user's current live connection."""
    db.execute(update(User).where(User.id == user_id).values(live_handle=handle))
    db.commit()


def clear_live_handle(db: Session, user_id: int, handle: str) -> bool:
    """Clear the stored handle only if it still equals ``handle``.

    Returns True when a row was cleared.
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.live_handle == handle)
        .values(live_handle=None)
    )
    db.commit()
    return bool(result.rowcount)


def clear_all_live_handles(db: Session) -> int:
    """Forget every stored handle; used at process start."""
    result = db.execute(
        update(User).where(User.live_handle.is_not(None)).values(live_handle=None)
    )
    db.commit()
    return int(result.rowcount or 0)
