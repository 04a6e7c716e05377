"""
Configuration management for podchamp.

Provides centralized configuration using Pydantic for validation and
environment variable support. Every setting can be supplied through a
``PODCHAMP_``-prefixed environment variable, a ``.env`` file, or a
command-line flag (which wins over both).
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

from platformdirs import user_data_dir, user_runtime_dir
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from podchamp.errors import ConfigError


APP_NAME = "podchamp"

# Default storage locations (XDG on Linux)
DB_PATH = Path(user_data_dir(APP_NAME)) / "podchamp.sqlite"
RUNTIME_DIR = Path(user_runtime_dir(APP_NAME))

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Config(BaseSettings):
    """
    Application configuration with environment variable support.

    Configuration can be provided via:
    1. Keyword arguments (the CLI passes its flags this way)
    2. Environment variables (prefixed with PODCHAMP_)
    3. .env file
    4. Default values

    Example:
        export PODCHAMP_DOWNLOADER="yt-dlp"
        export PODCHAMP_DATE_FORMAT="%Y%m%d"
    """

    model_config = SettingsConfigDict(
        env_prefix="PODCHAMP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage paths
    database_path: Path = Field(
        default=DB_PATH,
        description="Path to the SQLite feeds database"
    )
    runtime_dir: Path = Field(
        default=RUNTIME_DIR,
        description="Directory holding the single-instance lock"
    )

    # Downloading
    downloader: str = Field(
        default="wget",
        description="Command invoked with each episode URL as its lone argument"
    )
    date_format: str = Field(
        default="%F",
        description="strftime(3) format of the episode date passed in PODCHAMP_DATE"
    )

    # Network
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout in seconds"
    )
    max_concurrent_fetches: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on parallel feed requests (default: one per feed)"
    )

    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG/INFO/WARNING/ERROR)"
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @field_validator("downloader", "date_format")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    def ensure_directories(self) -> None:
        """Create the database and runtime directories if they don't exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.runtime_dir.mkdir(parents=True, exist_ok=True)


def get_config(**overrides: Any) -> Config:
    """
    Build the application configuration.

    Keyword arguments whose value is None are ignored, so optional CLI
    flags can be passed straight through.

    Returns:
        Config: Application configuration

    Raises:
        ConfigError: If a setting fails validation or a directory can't be created
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        config = Config(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    try:
        config.ensure_directories()
    except OSError as e:
        raise ConfigError(f"Cannot create podchamp directories: {e}") from e
    return config


def setup_logging(level: str = "WARNING", verbose: bool = False) -> None:
    """
    Configure root logging for the command line.

    Args:
        level: Level name from the configuration
        verbose: Force DEBUG regardless of ``level``
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
