"""In-memory presence registry.

Maps a user id to the single live connection currently allowed to receive
events for that user. The registry starts empty and is never persisted, so
after a restart every user is offline until they reconnect.
"""

from __future__ import annotations

import threading

from chat_relay.realtime.connection import LiveConnection


class PresenceRegistry:
    """Identity id -> live connection, last connection wins."""

    def __init__(self) -> None:
        self._connections: dict[int, LiveConnection] = {}
        self._lock = threading.Lock()

    def bind(self, connection: LiveConnection) -> LiveConnection | None:
        """Register ``connection`` for its user and return the one it replaced."""
        with self._lock:
            previous = self._connections.get(connection.user_id)
            self._connections[connection.user_id] = connection
        return previous

    def release(self, user_id: int, handle: str) -> bool:
        """Remove the entry for ``user_id`` only if it still holds ``handle``.

        A disconnect from a connection that has already been replaced must not
        mark the user offline. Returns True if the entry was removed.
        """
        with self._lock:
            current = self._connections.get(user_id)
            if current is None or current.handle != handle:
                return False
            del self._connections[user_id]
        return True

    def get(self, user_id: int) -> LiveConnection | None:
        with self._lock:
            return self._connections.get(user_id)

    def handle_of(self, user_id: int) -> str | None:
        connection = self.get(user_id)
        return connection.handle if connection is not None else None

    def is_present(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._connections

    def online_ids(self) -> set[int]:
        with self._lock:
            return set(self._connections)

    def clear(self) -> None:
        with self._lock:
            self._connections.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._connections
