# src/chat_relay/scripts/migrate.py
"""Upgrade the configured database to the latest Alembic revision."""
from __future__ import annotations

import os

from alembic import command
from alembic.config import Config

from chat_relay.core.settings import settings

_PROJECT_ROOT = os.path.join(os.path.dirname(__file__), "..", "..", "..")


def run_upgrade_head(database_url: str | None = None) -> None:
    cfg = Config(os.path.join(_PROJECT_ROOT, "migrations", "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url or settings.database_url)
    cfg.set_main_option("script_location", os.path.abspath(os.path.join(_PROJECT_ROOT, "migrations")))
    command.upgrade(cfg, "head")


if __name__ == "__main__":
    run_upgrade_head()
