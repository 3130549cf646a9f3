"""Application settings and configuration.

This module defines all configuration options for the chat relay service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Chat Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./chat_relay.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    # Messaging behaviour
    message_max_length: int = Field(default=4000, alias="MESSAGE_MAX_LENGTH")
    flush_backlog_on_connect: bool = Field(default=True, alias="FLUSH_BACKLOG_ON_CONNECT")
    discovery_sample_size: int = Field(default=10, alias="DISCOVERY_SAMPLE_SIZE")

    # AI completion proxy
    ai_api_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        alias="AI_API_URL",
    )
    ai_api_key: str | None = Field(default=None, alias="AI_API_KEY")
    ai_model: str = Field(default="openai/gpt-oss-20b:free", alias="AI_MODEL")
    ai_timeout_seconds: float = Field(default=30.0, alias="AI_TIMEOUT_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def is_sqlite(self) -> bool:
        """Return True when the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


settings = Settings()  # type: ignore[call-arg]
