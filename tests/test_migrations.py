# tests/test_migrations.py
"""The Alembic history must build the same schema as the ORM models."""

from sqlalchemy import create_engine, inspect

from chat_relay.db.session import Base
from chat_relay.scripts.migrate import run_upgrade_head


def test_upgrade_head_matches_models(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"

    run_upgrade_head(url)

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert {"user_account", "message"} <= tables
        for table in Base.metadata.sorted_tables:
            migrated = {column["name"] for column in inspector.get_columns(table.name)}
            assert migrated == set(table.columns.keys())
        indexes = {index["name"] for index in inspector.get_indexes("message")}
        assert {"ix_message_pair", "ix_message_receiver_state"} <= indexes
    finally:
        engine.dispose()
