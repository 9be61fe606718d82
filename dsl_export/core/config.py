from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Console
    DIFY_CONSOLE_URL: Optional[str] = None
    DIFY_EMAIL: Optional[str] = None
    DIFY_PASSWORD: Optional[str] = None

    # Knowledge API (placeholder conversion)
    DIFY_KNOWLEDGE_API_URL: Optional[str] = None
    DIFY_KNOWLEDGE_API_KEY: Optional[str] = None

    # Export
    OUTPUT_DIR: str = "./dsl"
    INCLUDE_SECRET: bool = False
    HEADLESS: bool = False

    # HTTP
    HTTP_TIMEOUT: float = 30.0
    PAGE_LIMIT: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("DIFY_CONSOLE_URL", "DIFY_KNOWLEDGE_API_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            v = v.strip().rstrip("/")
            return v or None
        return v

    @field_validator("PAGE_LIMIT")
    @classmethod
    def check_page_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("PAGE_LIMIT must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
