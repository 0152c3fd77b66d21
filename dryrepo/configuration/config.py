"""Configuration management for dryrepo."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Database Settings
    database_url: str = Field(default="sqlite+aiosqlite:///:memory:", alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Dispatch Settings
    # Cache method descriptors per dispatcher instance after first invocation
    dispatch_cache_descriptors: bool = Field(default=True, alias="DISPATCH_CACHE_DESCRIPTORS")
    # Refresh already-loaded entities on every read so bulk updates are visible
    store_populate_existing: bool = Field(default=True, alias="STORE_POPULATE_EXISTING")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return str(value).upper()

    @property
    def sql_echo(self) -> bool:
        """Echo SQL when explicitly enabled or when logging at DEBUG."""
        return self.database_echo or self.log_level == "DEBUG"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
