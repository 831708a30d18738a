"""Application settings loaded from environment variables."""

import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent
ENV_CANDIDATES = [BASE_DIR / ".env", BASE_DIR.parent / ".env"]


def _load_env_file() -> None:
    """Load the optional .env file when present."""
    for env_path in ENV_CANDIDATES:
        if env_path.exists():
            load_dotenv(env_path, override=False)


_load_env_file()


class UpstashSettings(BaseModel):
    """Credentials for the Redis-compatible REST store shared by all instances."""

    rest_url: Optional[str] = None
    rest_token: Optional[str] = None
    timeout_seconds: float = 5.0

    @property
    def configured(self) -> bool:
        return bool(self.rest_url and self.rest_token)


class Settings(BaseSettings):
    """Top-level API configuration."""

    model_config = SettingsConfigDict(env_prefix="", env_file=None, extra="ignore")

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")

    upstash: UpstashSettings = UpstashSettings()
    upstash_rest_url: Optional[str] = Field(None, alias="UPSTASH_REDIS_REST_URL")
    upstash_rest_token: Optional[str] = Field(None, alias="UPSTASH_REDIS_REST_TOKEN")
    rest_timeout_seconds: float = Field(5.0, alias="RATE_LIMIT_REST_TIMEOUT")

    redis_url: Optional[str] = Field(None, alias="RATE_LIMIT_REDIS_URL")
    rate_limit_fail_open: bool = Field(True, alias="RATE_LIMIT_FAIL_OPEN")

    @model_validator(mode="after")
    def _apply_overrides(self) -> "Settings":
        # Blank strings in .env files count as "not set".
        self.upstash = UpstashSettings(
            rest_url=(self.upstash_rest_url or "").strip() or None,
            rest_token=(self.upstash_rest_token or "").strip() or None,
            timeout_seconds=self.rest_timeout_seconds,
        )
        if self.redis_url is not None and not self.redis_url.strip():
            self.redis_url = None
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    try:
        settings_obj = Settings()
    except ValidationError as exc:
        logger.error(
            "configuration_validation_failed",
            error="validation_error",
            details=exc.errors(),
        )
        sys.exit(1)

    return settings_obj


settings = get_settings()
