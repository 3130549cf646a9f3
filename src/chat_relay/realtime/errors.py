"""Error taxonomy and tagged outcomes for the real-time core."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChatError(RuntimeError):
    """Base exception for chat delivery failures."""


class AuthenticationFailure(ChatError):
    """Raised when a connection credential is missing, invalid or expired."""


class NotFound(ChatError):
    """Raised when a referenced user or message does not exist."""


class Forbidden(ChatError):
    """Raised when the caller may not act on the referenced message."""


class StoreFailure(ChatError):
    """Raised when the durable store is unavailable or a write fails."""


class OutcomeStatus(str, Enum):
    """Result of a delivery-engine intent."""

    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    NOOP = "noop"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Tagged result returned by every delivery-engine operation."""

    status: OutcomeStatus
    reason: str | None = None
    message: Any | None = None
    message_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.status in (OutcomeStatus.ACCEPTED, OutcomeStatus.NOOP)

    @classmethod
    def accepted(cls, **kwargs: Any) -> DeliveryOutcome:
        return cls(OutcomeStatus.ACCEPTED, **kwargs)

    @classmethod
    def noop(cls) -> DeliveryOutcome:
        return cls(OutcomeStatus.NOOP)

    @classmethod
    def not_found(cls, reason: str) -> DeliveryOutcome:
        return cls(OutcomeStatus.NOT_FOUND, reason=reason)

    @classmethod
    def forbidden(cls) -> DeliveryOutcome:
        return cls(OutcomeStatus.FORBIDDEN, reason="forbidden")
