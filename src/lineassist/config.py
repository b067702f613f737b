from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MIME_TYPES = [
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "audio/wav",
    "audio/mp3",
    "audio/x-m4a",
    "video/mp4",
    "video/mov",
    "text/plain",
]


class Settings(BaseSettings):
    # LINE
    LINE_CHANNEL_ACCESS_TOKEN: str = Field("", description="Messaging API channel access token")
    LINE_CHANNEL_SECRET: str = Field("", description="Channel secret used to verify webhook signatures")

    # Gemini
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_TIMEOUT_SECONDS: float = 120.0

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    BASE_PATH: str = ""
    LOG_LEVEL: str = "INFO"

    # Files
    UPLOAD_DIR: str = "./uploads"
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    ALLOWED_MIME_TYPES: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES))
    TEMP_FILE_DELETE_DELAY_SECONDS: float = 5.0

    # Negotiation state
    PENDING_FILE_TTL_SECONDS: int = 600
    EVENT_DEDUPE_TTL_SECONDS: int = 3600

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings are read once per process and never reloaded."""
    return Settings()
