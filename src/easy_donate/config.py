"""Application configuration models and helpers."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl, Field
from pydantic.functional_validators import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Supported logging levels."""

    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"


class Locale(str, Enum):
    """Languages available for user-facing messages."""

    EN = "en"
    TH = "th"


class Settings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Storage
    database_url: str = Field("sqlite+aiosqlite:///./easydonate.db", alias="DATABASE_URL")

    # Redemption service
    redeem_api_url: AnyHttpUrl = Field("https://ownby4levy.vercel.app/api/redeem", alias="REDEEM_API_URL")
    truemoney_mobile: Optional[str] = Field(None, alias="TRUEMONEY_MOBILE")
    redeem_timeout_sec: float = Field(30.0, alias="REDEEM_TIMEOUT_SEC")

    # Dashboards and live feed
    recent_default_limit: int = Field(10, alias="RECENT_DEFAULT_LIMIT")
    recent_max_limit: int = Field(100, alias="RECENT_MAX_LIMIT")
    feed_queue_size: int = Field(64, alias="FEED_QUEUE_SIZE")

    # API
    api_host: str = Field("0.0.0.0", alias="API_HOST")
    api_port: int = Field(3000, alias="API_PORT")

    # Misc
    log_level: LogLevel = Field(LogLevel.INFO, alias="LOG_LEVEL")
    locale: Locale = Field(Locale.EN, alias="LOCALE")

    @field_validator(
        "recent_default_limit",
        "recent_max_limit",
        "feed_queue_size",
        "api_port",
    )
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be positive")
        return value

    @field_validator("redeem_timeout_sec")
    @classmethod
    def _ensure_positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeout must be positive")
        return value

    @field_validator("truemoney_mobile")
    @classmethod
    def _blank_as_missing(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
