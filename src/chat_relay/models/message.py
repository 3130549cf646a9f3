"""Models describing messages exchanged between two users."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_relay.db.session import Base
from chat_relay.db.time import utcnow


class Message(Base):
    """Text message between a sender and a receiver.

    ``delivered`` and ``seen`` only ever move from False to True.
    """

    __tablename__ = "message"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, index=True)

    delivered: Mapped[bool] = mapped_column(default=False, nullable=False)
    seen: Mapped[bool] = mapped_column(default=False, nullable=False)

    __table_args__ = (
        Index("ix_message_pair", "sender_id", "receiver_id", "created_at"),
        Index("ix_message_receiver_state", "receiver_id", "delivered", "seen"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, from={self.sender_id}, to={self.receiver_id})>"
