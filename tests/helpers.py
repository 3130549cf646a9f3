# tests/helpers.py
"""Test doubles shared across the suite."""
from __future__ import annotations

import uuid
from typing import Any


class RecordingConnection:
    """Live connection that records every emitted frame."""

    def __init__(self, user_id: int, handle: str | None = None, *, alive: bool = True) -> None:
        self.user_id = user_id
        self.handle = handle or uuid.uuid4().hex
        self.alive = alive
        self.events: list[tuple[str, Any]] = []

    async def emit(self, event: str, data: Any) -> bool:
        if not self.alive:
            return False
        self.events.append((event, data))
        return True

    def named(self, event: str) -> list[Any]:
        return [data for name, data in self.events if name == event]

    @property
    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]
