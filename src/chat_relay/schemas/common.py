"""Shared Pydantic base for payloads that travel to browser clients."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Snake-case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Return a JSON-safe dict keyed by wire (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True)
