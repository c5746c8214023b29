"""
Application configuration management
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "BusSeats"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./busseats.db"

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if v.startswith('postgresql://'):
            v = v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO: bool = False

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50

    # Identity provider tokens
    JWT_SECRET_KEY: str = "change-me-identity-provider-shared-secret"
    JWT_ALGORITHM: str = "HS256"

    # Reservations
    STORE_BACKEND: str = "sql"
    SEAT_LOCK_ENABLED: bool = False
    SEAT_LOCK_TTL_SECONDS: int = 10
    STORE_TIMEOUT_SECONDS: float = 10.0
    BUSINESS_TIMEZONE: str = "Asia/Kathmandu"

    @field_validator('STORE_BACKEND')
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("sql", "memory"):
            raise ValueError("STORE_BACKEND must be 'sql' or 'memory'")
        return v

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Monitoring
    PROMETHEUS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV == "testing"


# Create global settings instance
settings = Settings()
