"""Application configuration."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment driven configuration for the API."""

    app_name: str = Field("profile-api", validation_alias="APP_NAME")
    app_version: str = Field("1.0.0", validation_alias="APP_VERSION")
    environment: str = Field("development", validation_alias="ENVIRONMENT")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    trace_memory: bool = Field(True, validation_alias="TRACE_MEMORY")

    api_host: str = Field("0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(5000, validation_alias="PORT")
    cors_origins: str = Field("*", validation_alias="CORS_ORIGINS")

    database_uri: str | None = Field(None, validation_alias="DATABASE_URL")
    database_host: str = Field("db", validation_alias="DATABASE_HOST")
    database_port: int = Field(5432, validation_alias="DATABASE_PORT")
    database_user: str = Field("app", validation_alias="DATABASE_USER")
    database_password: str = Field("app", validation_alias="DATABASE_PASSWORD")
    database_name: str = Field("profiles", validation_alias="DATABASE_NAME")

    store_connect_timeout: float = Field(10.0, validation_alias="STORE_CONNECT_TIMEOUT")
    store_command_timeout: float = Field(30.0, validation_alias="STORE_COMMAND_TIMEOUT")
    store_ping_timeout: float = Field(5.0, validation_alias="STORE_PING_TIMEOUT")
    store_connect_retries: int = Field(5, ge=1, validation_alias="STORE_CONNECT_RETRIES")
    store_retry_interval: float = Field(2.0, ge=0, validation_alias="STORE_RETRY_INTERVAL")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    @property
    def database_url(self) -> str:
        if self.database_uri:
            return self.database_uri
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
