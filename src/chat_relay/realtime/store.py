"""Run blocking store calls off the event loop."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chat_relay.realtime.errors import StoreFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = Callable[[], Session]


class SessionRunner:
    """Execute ``operation(db, ...)`` in a worker thread with a fresh session.

    Each call gets its own session, so one slow query only occupies a worker
    thread and never the loop that serves other connections.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def run(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        def _call() -> T:
            with self.session_factory() as db:
                return operation(db, *args, **kwargs)

        try:
            return await run_in_threadpool(_call)
        except SQLAlchemyError as exc:
            logger.exception("Store operation %s failed", getattr(operation, "__name__", operation))
            raise StoreFailure(str(exc)) from exc
