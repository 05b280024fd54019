"""
Checkpoint tool settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
All settings can be overridden via GIT_CHECKPOINT_* environment variables
or a .env file in the invocation directory.
"""

from functools import lru_cache
from pathlib import PurePath

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Checkpoint tool configuration.

    Example:
        GIT_CHECKPOINT_STORAGE_DIR=.snapshots git-checkpoint ls
    """

    model_config = SettingsConfigDict(
        env_prefix="GIT_CHECKPOINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # .env files are shared with the host project
    )

    storage_dir: str = Field(
        default=".checkpoints",
        description="Checkpoint storage directory, relative to the working directory",
    )

    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    lock_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=600,
        description="How long commit/restore wait for the storage lock",
    )

    git_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Timeout for each git subprocess call",
    )

    @field_validator("storage_dir")
    @classmethod
    def validate_relative_storage_dir(cls, v: str) -> str:
        """Storage must live under the working directory."""
        path = PurePath(v)
        if not v or path.is_absolute():
            raise ValueError("storage_dir must be a non-empty relative path")
        if ".." in path.parts or path == PurePath("."):
            raise ValueError("storage_dir must not be '.' or contain '..'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance with all configuration loaded.
    """
    return Settings()
