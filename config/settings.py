"""Configuration management using pydantic-settings."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Cache settings
    cache_enabled: bool = True
    cache_default_ttl_seconds: float = 300.0
    cache_max_memory_items: int = 100

    # Persistent mirror (SQLite file under cache_directory)
    cache_persist: bool = False
    cache_directory: Path = Path("./cache")
    cache_db_name: str = "thirstee_cache.db"

    # Fetch coordination
    # None disables the timeout around producers
    fetch_timeout_seconds: Optional[float] = 30.0
    fetch_retry_count: int = 0
    fetch_retry_delay_seconds: float = 1.0
    cancel_orphaned_fetches: bool = False

    @property
    def cache_db_path(self) -> Path:
        return self.cache_directory / self.cache_db_name

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
