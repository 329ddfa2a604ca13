"""
Application configuration module.

Provides centralized, environment-safe configuration management
with sensible defaults for local development.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables or a ``.env``
    file in the working directory.
    """

    # Application metadata
    APP_NAME: str = Field(default="Status Page API")
    APP_VERSION: str = Field(default="1.0.0")
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)
    API_PREFIX: str = Field(default="/api/v1")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./statuspage.db")
    DB_POOL_SIZE: int = Field(default=10, ge=1)
    DB_MAX_OVERFLOW: int = Field(default=20, ge=0)
    DB_POOL_TIMEOUT: int = Field(default=30, ge=1)
    DB_POOL_RECYCLE: int = Field(default=1800, ge=-1)
    DB_CONNECT_TIMEOUT: int = Field(default=10, ge=1)

    # JWT
    SECRET_KEY: str = Field(default="change-me-in-production-please-32chars")
    ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, ge=1)
    ISSUER: str = Field(default="statuspage-api")
    AUDIENCE: str = Field(default="statuspage-clients")

    # HTTP / realtime transport
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])
    SOCKETIO_PATH: str = Field(default="socket.io")

    # Rate limiting (per client IP, API routes only)
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_REQUESTS: int = Field(default=100, ge=1)
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=900, ge=1)
    LOGIN_RATE_LIMIT: int = Field(default=5, ge=1)  # attempts per minute

    # Logging configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="console")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str) and not value.startswith("["):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance.
    """
    return Settings()


settings = get_settings()
