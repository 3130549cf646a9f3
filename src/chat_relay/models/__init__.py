# src/chat_relay/models/__init__.py
"""SQLAlchemy models for the chat relay application."""

from .message import Message
from .user import User

__all__ = ["Message", "User"]
