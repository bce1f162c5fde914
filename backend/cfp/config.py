"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All connection strings come from environment variables (never hardcoded credentials)
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all settings: works out-of-the-box with docker-compose
    - SERIALIZABLE isolation by default: transaction retries are bounded by
      transaction_max_attempts
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://cfp:cfp@db:5432/call_for_papers"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if isinstance(v, str) and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_isolation_level: str = "SERIALIZABLE"

    # Bounds every operation; a lock wait past this surfaces as StorageError
    lock_timeout_ms: int = 5_000
    statement_timeout_ms: int = 30_000

    # Transaction retry on serialization failure / deadlock
    transaction_max_attempts: int = 3
    transaction_base_delay_ms: int = 50
    transaction_max_delay_ms: int = 1_000

    # Ratings
    statistics_top_n: int = 10

    # API
    cors_origins: list[str] = ["http://localhost:8080"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
