"""
RetroPulse configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Database. Empty selects the in-memory stores.
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", "2"))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", "20"))
    DB_COMMAND_TIMEOUT: float = float(os.environ.get("DB_COMMAND_TIMEOUT", "60"))

    # Session tokens
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "dev-jwt-secret-change-me")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "720"))

    # Identity hashing and admin override
    COOKIE_SECRET: str = os.environ.get("COOKIE_SECRET", "dev-cookie-secret-16chars")
    ADMIN_SECRET_KEY: str = os.environ.get("ADMIN_SECRET_KEY", "dev-admin-secret-16chars")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Realtime
    EVENT_QUEUE_SIZE: int = int(os.environ.get("EVENT_QUEUE_SIZE", "256"))

    @property
    def use_postgres(self) -> bool:
        return bool(self.DATABASE_URL)


# Singleton instance
settings = Settings()

if settings.ENVIRONMENT == "production":
    for _name in ("JWT_SECRET", "COOKIE_SECRET", "ADMIN_SECRET_KEY"):
        if not os.environ.get(_name):
            raise RuntimeError(f"{_name} environment variable is required")
