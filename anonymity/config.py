"""
Anonymity Service Configuration
Loads settings from environment variables
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Anonymity settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # APPLICATION
    # ========================================================================
    ENV: str = Field(default="development", description="Environment name")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON")

    # ========================================================================
    # SHARED STORE
    # ========================================================================
    STORE_BACKEND: str = Field(
        default="redis",
        description="Shared store backend: 'redis' or 'memory'"
    )
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(default=50)
    REDIS_SOCKET_TIMEOUT: int = Field(default=5)
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5)

    # ========================================================================
    # DAILY SALT
    # ========================================================================
    SALT_KEY_PREFIX: str = Field(default="salt")
    SALT_TTL_SECONDS: int = Field(default=60 * 60 * 24)
    SALT_BYTES: int = Field(default=32, description="Random bytes per daily salt")
    SALT_ATOMIC_CREATE: bool = Field(
        default=False,
        description="Create the daily salt with SET NX instead of read-then-write"
    )

    # ========================================================================
    # INGESTION
    # ========================================================================
    DEDUP_ENABLED: bool = Field(default=True)
    DEDUP_TTL_SECONDS: int = Field(default=60 * 60 * 24)
    BATCH_MAX_SIZE: int = Field(default=100)

    @field_validator(
        "SALT_TTL_SECONDS",
        "DEDUP_TTL_SECONDS",
        "BATCH_MAX_SIZE",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("SALT_BYTES")
    @classmethod
    def salt_must_be_high_entropy(cls, v: int) -> int:
        if v < 16:
            raise ValueError("SALT_BYTES must be at least 16")
        return v

    @field_validator("STORE_BACKEND")
    @classmethod
    def normalize_backend(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.ENV.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
