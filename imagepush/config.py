"""Configuration settings for imagepush.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "imagepush" / "buildinfo.sqlite"
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the IMAGEPUSH_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="IMAGEPUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Repository
    repository_url: str = Field(
        default="http://localhost:8082/artifactory",
        description="Base URL of the artifact repository",
    )
    repository_user: str | None = Field(
        default=None,
        description="Repository user for API calls and registry login",
    )
    repository_token: str | None = Field(
        default=None,
        description="Access token or password for the repository user",
    )

    # Paths
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Build-info database connection URL",
    )
    tmp_dir: Path | None = Field(
        default=None,
        description="Directory for transfer manifests (uses system default if not set)",
    )

    # Operational modes
    engine: Literal["docker", "podman"] = Field(
        default="docker",
        description="Container engine used for push and image inspection",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    threads: int = Field(
        default=3,
        ge=1,
        le=32,
        description="Maximum parallel connections to the repository",
    )

    # Tag lookup polling
    tag_lookup_attempts: int = Field(
        default=5,
        ge=1,
        le=60,
        description="Attempts to find tagged layers before giving up",
    )
    tag_lookup_interval: float = Field(
        default=2.0,
        ge=0,
        description="Seconds between tagged layer lookups",
    )

    # Timeouts (in seconds)
    engine_timeout: int = Field(
        default=1800,
        ge=10,
        description="Timeout for container engine commands",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for repository API requests",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    The repository token is masked.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    masked = settings.model_copy(
        update={"repository_token": "****" if settings.repository_token else None}
    )
    return masked.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
