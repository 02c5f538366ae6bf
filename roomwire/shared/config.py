"""
MODULE OVERVIEW:
Client-wide configuration using Pydantic Settings.
Where it fits: every transport profile, the request builder and the sync loop
read their timings and paths from here.

WHAT IS HAPPENING HERE:
The long-poll client timeout is derived from three numbers instead of one:
the ordinary request timeout, the window the server holds a /sync open for,
and a grace period on top. If the client gave up at exactly the server's
window, a perfectly normal "no new events" reply would race our own timeout
and show up as a network error.
"""
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROOMWIRE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    LOG_LEVEL: str = "INFO"

    # Homeserver layout
    SERVER_BASE: str = "https://matrix.org"
    API_PATH: str = "_matrix/client/r0/"
    MEDIA_PATH: str = "_matrix/media/r0/"
    LOGIN_PATH: str = "_matrix/client/r0/login"

    # "query" sends ?access_token=..., "header" sends Authorization: Bearer
    AUTH_MODE: Literal["query", "header"] = "query"

    # Standard calls
    REQUEST_TIMEOUT_S: float = Field(default=10.0, gt=0)

    # Long polling
    LONG_POLL_TIMEOUT_S: float = Field(default=30.0, gt=0)
    LONG_POLL_GRACE_S: float = Field(default=10.0, gt=0)

    # Media
    MEDIA_TIMEOUT_S: float = Field(default=60.0, gt=0)
    MEDIA_MAX_UPLOAD_BYTES: int = Field(default=50 * 1024 * 1024, gt=0)

    # Shared connection pool
    MAX_CONNECTIONS: int = Field(default=20, ge=2)
    MAX_KEEPALIVE: int = Field(default=10, ge=1)

    # Sync loop
    SYNC_BACKOFF_BASE_S: float = Field(default=1.0, gt=0)
    SYNC_BACKOFF_MAX_S: float = Field(default=32.0, gt=0)
    SYNC_FULL_STATE: bool = False
    SYNC_FILTER: str | None = None

    @property
    def long_poll_timeout_ms(self) -> int:
        return int(self.LONG_POLL_TIMEOUT_S * 1000)


settings = Settings()
