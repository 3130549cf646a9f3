"""SQLAlchemy model for user identities."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_relay.db.session import Base
from chat_relay.db.time import utcnow


class User(Base):
    """A registered identity addressable by phone number.

    ``live_handle`` mirrors the in-memory presence registry. It is advisory
    only and may be stale between a disconnect and its cleanup.
    """

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    live_handle: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, phone={self.phone!r})>"
