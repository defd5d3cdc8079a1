from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    base_url: str = Field(
        "https://www.flightsfinder.com/portal", alias="PORTAL_BASE_URL"
    )
    proxy_url: Optional[str] = Field(None, alias="PORTAL_PROXY_URL")
    session_cookie_name: str = Field(
        "flightsfinder_session", alias="SESSION_COOKIE_NAME"
    )

    max_polls: int = Field(15, alias="MAX_POLLS")
    max_poll_retries: int = Field(3, alias="MAX_POLL_RETRIES")
    max_failed_polls: int = Field(10, alias="MAX_FAILED_POLLS")
    max_polling_time_s: float = Field(30.0, alias="MAX_POLLING_TIME_S")
    poll_interval_s: float = Field(0.1, alias="POLL_INTERVAL_S")
    network_backoff_s: float = Field(1.0, alias="NETWORK_BACKOFF_S")
    exchange_attempts: int = Field(3, alias="EXCHANGE_ATTEMPTS")
    http_timeout_s: float = Field(15.0, alias="HTTP_TIMEOUT_S")

    airports_file: Optional[str] = Field(None, alias="AIRPORTS_FILE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator(
        "max_polls",
        "max_poll_retries",
        "max_failed_polls",
        "exchange_attempts",
    )
    @classmethod
    def _count_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("poll counts must be greater than 0")
        return v

    @field_validator("max_polling_time_s", "http_timeout_s")
    @classmethod
    def _budget_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("time budgets must be greater than 0")
        return v

    @field_validator("poll_interval_s", "network_backoff_s")
    @classmethod
    def _delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delays must not be negative")
        return v

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("PORTAL_BASE_URL must be a non-empty string")
        return v.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def proxies(self) -> dict[str, str] | None:
        if not self.proxy_url:
            return None
        return {"http": self.proxy_url, "https": self.proxy_url}


@dataclass(frozen=True, slots=True)
class PollingBudget:
    """Limits and pacing for one portal pipeline."""

    max_polls: int = 15
    max_poll_retries: int = 3
    max_failed_polls: int = 10
    max_polling_time_s: float = 30.0
    poll_interval_s: float = 0.1
    network_backoff_s: float = 1.0
    exchange_attempts: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "PollingBudget":
        return cls(
            max_polls=settings.max_polls,
            max_poll_retries=settings.max_poll_retries,
            max_failed_polls=settings.max_failed_polls,
            max_polling_time_s=settings.max_polling_time_s,
            poll_interval_s=settings.poll_interval_s,
            network_backoff_s=settings.network_backoff_s,
            exchange_attempts=settings.exchange_attempts,
        )


@lru_cache()
def get_settings() -> Settings:
    """Return application settings loaded from the environment."""
    return Settings()  # type: ignore[call-arg]


__all__ = ["Settings", "PollingBudget", "get_settings"]
