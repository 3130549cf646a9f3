# src/chat_relay/main.py
"""Main entry point for the chat relay application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from chat_relay.api.v1 import (
    ai_router,
    auth_router,
    chats_router,
    messages_router,
    realtime_router,
    users_router,
)
from chat_relay.core.logging import configure_logging
from chat_relay.core.settings import settings
from chat_relay.db.session import SessionLocal, create_tables
from chat_relay.realtime.delivery import DeliveryEngine
from chat_relay.realtime.gateway import ConnectionGateway
from chat_relay.realtime.presence import PresenceRegistry
from chat_relay.realtime.store import SessionFactory, SessionRunner
from chat_relay.services import user_service

configure_logging()
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Real-time one-to-one messaging API",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(chats_router, prefix="/api/v1")
app.include_router(ai_router, prefix="/api/v1")
app.include_router(realtime_router)


def install_realtime(target: FastAPI, session_factory: SessionFactory) -> None:
    """Build the presence registry, delivery engine and gateway for ``target``.

    The registry always starts empty.
    """
    presence = PresenceRegistry()
    store = SessionRunner(session_factory)
    delivery = DeliveryEngine(presence, store)
    target.state.session_factory = session_factory
    target.state.presence = presence
    target.state.delivery = delivery
    target.state.gateway = ConnectionGateway(
        presence,
        delivery,
        flush_backlog=settings.flush_backlog_on_connect,
    )


install_realtime(app, SessionLocal)


@app.on_event("startup")
async def on_startup() -> None:
    if settings.auto_create_tables:
        create_tables()
    # Handles from a previous process are meaningless now.
    cleared = await app.state.gateway.store.run(user_service.clear_all_live_handles)
    if cleared:
        logger.info("Cleared %d stale live handles", cleared)
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Real-time one-to-one messaging API",
        "docs": "/docs",
        "websocket": "/ws",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chat_relay.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
