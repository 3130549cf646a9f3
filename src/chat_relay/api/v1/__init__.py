# src/chat_relay/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    ai_router,
    auth_router,
    chats_router,
    messages_router,
    realtime_router,
    users_router,
)

__all__ = [
    "ai_router",
    "auth_router",
    "chats_router",
    "messages_router",
    "realtime_router",
    "users_router",
]
