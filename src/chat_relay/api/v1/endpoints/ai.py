# src/chat_relay/api/v1/endpoints/ai.py
"""Persona-switchable AI chat proxy."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from chat_relay.schemas.ai import AIChatRequest, AIChatResponse
from chat_relay.services.ai_proxy import (
    CompletionClient,
    CompletionError,
    CompletionTimeout,
    get_completion_client,
    persona_prompt,
)

router = APIRouter(prefix="/ai", tags=["ai"])


def get_completion_client_dep() -> CompletionClient:
    return get_completion_client()


CompletionClientDep = Annotated[CompletionClient, Depends(get_completion_client_dep)]


@router.post("/chat", response_model=AIChatResponse)
async def chat(payload: AIChatRequest, client: CompletionClientDep) -> AIChatResponse:
    """Prepend the persona prompt and forward the conversation."""
    if not payload.messages:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Messages array is required.",
        )

    conversation = [persona_prompt(payload.persona), *payload.messages]
    try:
        reply = await client.complete(conversation)
    except CompletionTimeout as err:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(err)) from err
    except CompletionError as err:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(err)) from err

    return AIChatResponse(assistant_message=reply, full_conversation=[*conversation, reply])
