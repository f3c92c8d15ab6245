"""Ambient library settings using pydantic-settings.

Environment variables (prefix `SMSDISPATCH_`) tune HTTP and logging defaults only;
account credentials always come from the pool `Config`. Explicit constructor
arguments win over these values. Use `get_settings()` for the cached instance.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    HTTP_TIMEOUT: float = Field(30.0, gt=0, description="Default per-request HTTP timeout in seconds")
    MAX_RESPONSE_BYTES: int = Field(1024 * 1024, gt=0, description="Upper bound on a vendor response body")
    USER_AGENT: str = Field("smsdispatch/0.1", description="User-Agent sent unless a transformer overrides it")
    LOG_LEVEL: str = Field("INFO", description="Library log level")

    model_config = SettingsConfigDict(env_prefix="SMSDISPATCH_", env_file=None, case_sensitive=False, extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
