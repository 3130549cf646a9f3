# src/chat_relay/schemas/__init__.py
"""Pydantic schemas for HTTP payloads and live-connection events."""

from .ai import AIChatRequest, AIChatResponse, ChatTurn
from .message import MarkSeenRequest, MarkSeenResponse, MessagePayload
from .user import LoginRequest, LoginResponse, RegisterRequest, UserSummary

__all__ = [
    "AIChatRequest",
    "AIChatResponse",
    "ChatTurn",
    "LoginRequest",
    "LoginResponse",
    "MarkSeenRequest",
    "MarkSeenResponse",
    "MessagePayload",
    "RegisterRequest",
    "UserSummary",
]
