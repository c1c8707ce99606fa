"""
SIO Configuration Module

Centralized configuration management using Pydantic Settings.
Supports environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Storage: postgres in deployments, memory for local runs and tests
    storage_backend: Literal["postgres", "memory"] = "postgres"
    # Seconds an in-memory transaction waits on a unique key held by another
    memory_lock_timeout: float = 10.0

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_workers: int = 1
    api_reload: bool = False


class PostgresSettings(BaseSettings):
    """PostgreSQL settings."""

    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_",
        env_file=".env",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 5432
    user: str = "sio"
    password: SecretStr = Field(default=SecretStr("sio_dev_password"))
    database: str = "sio"
    schema_name: str = "sio"
    min_pool_size: int = 2
    max_pool_size: int = 10

    # Seconds; applies to every statement issued through the pool
    command_timeout: float = 10.0
    connect_timeout: float = 5.0
    # Seconds to wait for a free pool connection
    acquire_timeout: float = 5.0


class AuthSettings(BaseSettings):
    """Authentication settings."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    jwt_secret_key: SecretStr = Field(default=SecretStr("jwt-secret-change-me"))
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60


class TriageSettings(BaseSettings):
    """Admission lifecycle settings."""

    model_config = SettingsConfigDict(
        env_prefix="SIO_TRIAGE_",
        env_file=".env",
        extra="ignore",
    )

    # Reject admissions whose color code is not in the registry
    validate_colors: bool = False
    bracelet_max_attempts: int = Field(default=5, ge=1)


class Settings:
    """
    Aggregated settings container.

    Usage:
        from sio.config import get_settings
        settings = get_settings()
        print(settings.app.api_port)
        print(settings.postgres.host)
    """

    def __init__(self):
        self.app = AppSettings()
        self.postgres = PostgresSettings()
        self.auth = AuthSettings()
        self.triage = TriageSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: The application settings
    """
    return Settings()
