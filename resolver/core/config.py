# resolver/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    DATABASE_URL: str = Field(default="sqlite:///./resolver.db")
    APP_NAME: str = "Resolver"
    APP_DESC: str = "Maintenance ticket tracking for admins, users and technicians"
    APP_VERSION: str = "1.0.0"
    ENV_: str | None = None  # optional

    # CORS origins, comma separated
    CORS_ORIGINS: str | None = None

    LOG_LEVEL: str = "INFO"

    # Ticket list pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 1000

    # Client side (controller) settings
    API_BASE_URL: str = "http://localhost:8000"
    API_TIMEOUT: float = 10.0
    CLIENT_FETCH_LIMIT: int = 500

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
