"""
Centralized configuration management for reviewcore.
"""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_SESSION_LIMIT


def get_default_db_path() -> Path:
    """Returns the default path for the database file."""
    return Path.home() / ".reviewcore" / "reviewcore.db"


class Settings(BaseSettings):
    """
    Application settings, loaded from REVIEWCORE_* environment variables or a
    .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="REVIEWCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Storage ---
    db_path: Path = Field(default_factory=get_default_db_path)

    # --- Sessions ---
    session_limit: int = Field(default=DEFAULT_SESSION_LIMIT, ge=1)
    # Seed for the fallback shuffle. None draws from system entropy.
    fallback_seed: Optional[int] = None

    # --- Testing Configuration ---
    # When True, disables safety checks that prevent data loss during tests.
    # Should NEVER be enabled in production.
    testing_mode: bool = False


settings = Settings()
