"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Every deployment knob is read from the environment or `.env`; nothing secret is hardcoded
    - get_settings() is cached (lru_cache): one Settings instance per process
    - database_url always names an async driver

Design Decisions:
    - Escrow rules (70% progress, 80% attendance, 5–20 SKL/h) live in core/, not here: they are
      part of the contract between learner and tutor, not something an operator tunes
    - The registration grant IS a knob: test networks and staging hand out different amounts
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Store
    database_url: str = "postgresql+asyncpg://skillloop:skillloop@db:5432/skillloop"
    database_pool_size: int = Field(20, ge=1)
    database_max_overflow: int = Field(10, ge=0)

    # Token economy
    initial_token_balance: float = Field(200.0, ge=0)

    # Collaborators
    notification_max_attempts: int = Field(3, ge=1)
    certificate_metadata_base_url: str = "https://skillloop.xyz/certificates"

    # HTTP
    cors_origins: list[str] = ["http://localhost:3000"]

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @field_validator("database_url", mode="before")
    @classmethod
    def use_async_driver(cls, v: str) -> str:
        """Hosted databases hand out sync URLs; the engine here is async-only."""
        if isinstance(v, str):
            for prefix, driver in _ASYNC_DRIVERS.items():
                if v.startswith(prefix):
                    return driver + v[len(prefix):]
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
