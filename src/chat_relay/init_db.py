# src/chat_relay/init_db.py
"""Create all tables directly from the ORM metadata (development shortcut)."""

from chat_relay.db.session import create_tables

if __name__ == "__main__":
    create_tables()
    print("Database initialized.")
