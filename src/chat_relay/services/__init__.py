# src/chat_relay/services/__init__.py
"""Store-facing service helpers."""

from . import message_service, user_service

__all__ = ["message_service", "user_service"]
