"""Schemas for the AI chat proxy."""

from typing import Literal

from pydantic import BaseModel, Field

from .common import WireModel


class ChatTurn(BaseModel):
    """One turn of an AI conversation in completion-API format."""

    role: Literal["system", "user", "assistant"]
    content: str = ""


class AIChatRequest(BaseModel):
    messages: list[ChatTurn] = Field(default_factory=list)
    persona: str = "friendly"


class AIChatResponse(WireModel):
    assistant_message: ChatTurn
    full_conversation: list[ChatTurn]
