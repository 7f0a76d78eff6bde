from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Huddle", env="APP_NAME", description="Human readable service name")
    environment: str = Field(default="development", env="ENVIRONMENT", description="Deployment environment name")
    debug: bool = Field(default=False, env="DEBUG", description="Enable debug mode")
    log_level: str = Field(default="INFO", env="LOG_LEVEL", description="Root logger level")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
        ],
        env="CORS_ORIGINS",
        description="List of allowed CORS origins",
    )

    database_url: str = Field(
        default="sqlite+pysqlite:///./huddle.db",
        env="DATABASE_URL",
        description="SQLAlchemy URL of the message store",
    )

    chat_history_default_limit: int = Field(default=50, env="CHAT_HISTORY_DEFAULT_LIMIT")
    chat_history_max_limit: int = Field(default=100, env="CHAT_HISTORY_MAX_LIMIT")
    chat_message_max_length: int = Field(default=500, env="CHAT_MESSAGE_MAX_LENGTH")
    max_display_name_length: int = Field(default=32, env="MAX_DISPLAY_NAME_LENGTH")
    max_room_name_length: int = Field(default=64, env="MAX_ROOM_NAME_LENGTH")
    typing_timeout_seconds: float = Field(
        default=3.0,
        env="TYPING_TIMEOUT_SECONDS",
        description="Seconds without a typing signal before the indicator is cleared.",
    )

    websocket_keepalive_timeout_seconds: float = Field(
        default=30.0,
        env="WEBSOCKET_KEEPALIVE_TIMEOUT_SECONDS",
        description="Idle seconds before the server pings a websocket client.",
    )
    websocket_send_queue_size: int = Field(
        default=256,
        env="WEBSOCKET_SEND_QUEUE_SIZE",
        description="Outbound events buffered per connection before it is treated as a slow consumer.",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return str(value or "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
