"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache) — single instance per process
    - Transaction budget defaults: 100 retries, 60 s wall clock

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for every setting: runs out-of-the-box against a local SQLite file
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Store
    database_url: str = "sqlite+aiosqlite:///./scheduling.db"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms provide postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_isolation_level: str = "SERIALIZABLE"
    create_schema_on_startup: bool = True

    # Namespace
    namespace_path: list[str] = ["scheduling"]

    # Transactions
    transaction_retry_limit: int = Field(100, ge=0)
    transaction_timeout_seconds: float = Field(60.0, gt=0)
    retry_base_delay_ms: int = Field(10, ge=0)
    retry_max_delay_ms: int = Field(1000, ge=0)

    # Scheduling
    max_classes_per_student: int | None = Field(None, ge=1)

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
