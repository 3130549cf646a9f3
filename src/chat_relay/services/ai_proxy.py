"""Client for the third-party chat-completion API behind the AI chat route."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from chat_relay.core.settings import settings
from chat_relay.schemas.ai import ChatTurn

logger = logging.getLogger(__name__)

_STYLE = (
    " Only give clean, simple, short organized text."
    " Do NOT use markdown tables, pipes (|), code blocks, or complex formatting."
)

PERSONAS: dict[str, str] = {
    "friendly": "You are a friendly, helpful AI who talks politely." + _STYLE,
    "sarcastic": "You are a sarcastic AI with witty replies." + _STYLE,
    "coder": "You are a senior software engineer. Answer like a pro coder." + _STYLE,
    "romantic": "You are a sweet, loving AI that talks romantically." + _STYLE,
}
DEFAULT_PERSONA = "friendly"


class CompletionError(RuntimeError):
    """Raised when the completion API fails or returns no choices."""


class CompletionTimeout(CompletionError):
    """Raised when the completion API does not answer in time."""


def persona_prompt(persona: str | None) -> ChatTurn:
    """Return the system turn for ``persona``, falling back to the default."""
    return ChatTurn(role="system", content=PERSONAS.get(persona or "", PERSONAS[DEFAULT_PERSONA]))


class CompletionClient:
    """Thin async wrapper around an OpenAI-compatible completions endpoint."""

    def __init__(
        self,
        *,
        url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or settings.ai_api_url
        self.api_key = api_key if api_key is not None else settings.ai_api_key
        self.model = model or settings.ai_model
        self.timeout = httpx.Timeout(timeout_seconds or settings.ai_timeout_seconds)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def complete(self, conversation: list[ChatTurn]) -> ChatTurn:
        """Send ``conversation`` and return the assistant's reply."""
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [turn.model_dump() for turn in conversation],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=body, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("AI completion timed out after %s", self.timeout.read)
            raise CompletionTimeout("AI request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("AI completion request failed: %s", exc)
            raise CompletionError(f"AI request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise CompletionError(f"AI returned non-JSON response ({response.status_code})") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if response.is_error or not choices:
            logger.warning("AI returned no choices (status %s)", response.status_code)
            raise CompletionError("AI returned no choices")

        message = choices[0].get("message") or {}
        return ChatTurn(role="assistant", content=message.get("content") or "")


def get_completion_client() -> CompletionClient:
    """Return a client configured from settings."""
    return CompletionClient()
