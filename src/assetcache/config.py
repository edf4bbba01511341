"""
Configuration management using pydantic-settings.

Loads configuration from ASSETCACHE_* environment variables and .env files.
Validates values and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the cache components loaded from the environment.

    Every field can be set as ASSETCACHE_<FIELD>, for example
    ASSETCACHE_CACHE_CAPACITY=5000.

    Storage:
        CACHE_DIR: Directory holding the store database
        STORE_NAME: Database name, the file is CACHE_DIR/STORE_NAME.db

    Tuning:
        CACHE_CAPACITY: Default BoundedCache capacity
        PAGE_SIZE: Default Paginator page size
        CHUNK_SIZE: Default process_in_chunks chunk size

    Logging:
        LOG_LEVEL: Logging level
        LOG_FILE: Optional JSON Lines log file
    """

    model_config = SettingsConfigDict(
        env_prefix="ASSETCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_DIR: Path = Field(default=Path(".cache"), description="Store directory")
    STORE_NAME: str = Field(default="ITAMSystem", description="Store database name")

    CACHE_CAPACITY: int = Field(
        default=1000, ge=1, description="Default in-memory cache capacity"
    )
    PAGE_SIZE: int = Field(default=50, ge=1, description="Default page size")
    CHUNK_SIZE: int = Field(
        default=1000, ge=1, description="Default chunk size for batch processing"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON Lines log file")

    @field_validator("STORE_NAME")
    @classmethod
    def validate_store_name(cls, v: str) -> str:
        """Store name becomes a file name, so keep it to a single path part."""
        v = v.strip()
        if not v or "/" in v or "\\" in v:
            raise ValueError("STORE_NAME must be a non-empty name without path separators")
        return v

    @property
    def db_path(self) -> Path:
        """Path of the SQLite database backing the store."""
        return self.CACHE_DIR / f"{self.STORE_NAME}.db"

    def ensure_directories(self) -> None:
        """Create the cache directory if it doesn't exist."""
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | float | None]:
        """Return settings as plain values for display."""
        return {
            "CACHE_DIR": str(self.CACHE_DIR),
            "STORE_NAME": self.STORE_NAME,
            "DB_PATH": str(self.db_path),
            "CACHE_CAPACITY": self.CACHE_CAPACITY,
            "PAGE_SIZE": self.PAGE_SIZE,
            "CHUNK_SIZE": self.CHUNK_SIZE,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
