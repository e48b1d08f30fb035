"""Configuration from environment and CLI overrides."""

import os
import socket
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_workers() -> int:
    return os.cpu_count() or 4


class Settings(BaseSettings):
    """filedex settings from env (FILEDEX_*). CLI flags override single fields."""

    model_config = SettingsConfigDict(env_prefix="FILEDEX_", extra="ignore")

    # Catalog location
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".filedex")
    db_filename: str = "files.db"

    # Identity of this machine in the catalog; empty = local host name
    hostname: str = ""

    # Update pipeline: hasher pool size and work queue bound (0 = 4 * workers)
    workers: int = Field(default_factory=_default_workers)
    queue_size: int = 0

    # Logging (empty log_file = stderr only; level DEBUG|INFO|WARNING|ERROR)
    log_level: str = "INFO"
    log_file: str = ""

    @field_validator("workers")
    @classmethod
    def _workers_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("workers must be at least 1")
        return v

    @field_validator("queue_size")
    @classmethod
    def _queue_size_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("queue_size must not be negative")
        return v

    @property
    def db_path(self) -> Path:
        """Full path of the SQLite catalog file."""
        return self.config_dir / self.db_filename

    @property
    def effective_hostname(self) -> str:
        """Configured hostname, or the local host name when none is set."""
        return self.hostname.strip() or socket.gethostname()

    @property
    def effective_queue_size(self) -> int:
        return self.queue_size or 4 * self.workers


def get_settings() -> Settings:
    """Return application settings."""
    return Settings()
