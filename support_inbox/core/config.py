# support_inbox/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    DATABASE_URL: str = Field(default="sqlite:///./tickets.db")
    APP_NAME: str = "Support Inbox"
    APP_DESC: str = "Support ticket inbox with notes and stats"
    APP_VERSION: str = "1.0.0"

    # Comma separated, "*" allows all
    CORS_ORIGINS: str = "*"

    # Bearer token verification
    JWT_SECRET: str = Field(default="change-me")
    JWT_ALGORITHM: str = "HS256"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"  # console | json

    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
