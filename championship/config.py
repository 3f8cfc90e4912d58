"""Application configuration."""
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./championship.db",
        description="Async SQLAlchemy database URL",
    )
    db_pool_size: int = Field(
        default=10,
        description="DB connection pool size (ignored for SQLite)",
    )
    db_max_overflow: int = Field(
        default=5,
        description="Max overflow connections (ignored for SQLite)",
    )
    db_echo: bool = False

    # Redis - optional, mirrors tournament events to a stream when set
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for event stream mirroring",
    )
    event_stream_max_len: int = Field(
        default=10000,
        description="Approximate max length of the tournament event stream",
    )

    # Tournament floor
    auto_resume_delay_seconds: int = Field(
        default=0,
        ge=0,
        description="Pause the clock on each bust/elimination and resume after N seconds (0 = off)",
    )
    penalty_preview_max_rebuys: int = Field(
        default=7,
        ge=0,
        description="Highest rebuy count shown in penalty previews",
    )

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )
            if self.database_url.startswith("sqlite"):
                raise ValueError(
                    "SQLite is not supported in production environment"
                )
        return self

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
