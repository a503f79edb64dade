"""Environment-driven client defaults.

Every field maps to a ``REQUESTGUARD_*`` environment variable (or a ``.env``
entry).  Settings sit between the built-in constants in
:mod:`RequestGuard.policy` and explicit constructor arguments::

    REQUESTGUARD_BASE_URL=https://api.example.com
    REQUESTGUARD_TIMEOUT=5
    REQUESTGUARD_HEADERS='{"X-Client": "batch"}'
    REQUESTGUARD_RETRY_COUNT=2
    REQUESTGUARD_RETRY_DELAY=0.5
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policy import (
    DEFAULT_BASE_URL,
    DEFAULT_HEADERS,
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
)

__all__ = ["ClientSettings", "get_settings", "reset_settings"]


class ClientSettings(BaseSettings):
    """Defaults applied to every :class:`~RequestGuard.client.GuardedClient`."""

    base_url: str = Field(default=DEFAULT_BASE_URL, description="Prefix for relative request URLs")
    timeout: Optional[float] = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Request timeout in seconds; None disables it"
    )
    headers: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_HEADERS),
        description="Default headers sent with every request",
    )
    retry_count: int = Field(default=DEFAULT_RETRY_COUNT, ge=0, description="Retries after the first attempt")
    retry_delay: float = Field(default=DEFAULT_RETRY_DELAY, ge=0, description="Seconds between attempts")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")

    model_config = SettingsConfigDict(
        env_prefix="REQUESTGUARD_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    return ClientSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next :func:`get_settings` re-reads the environment."""

    get_settings.cache_clear()
