"""Configuration settings for ulb.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.

These are the tool's own settings. The per-project build manifest
(Config.toml) is handled by ulb.manifest.
"""

from pathlib import Path, PurePosixPath
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "ulb" / "db.sqlite"
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the ULB_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="ULB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    build_dir: str = Field(
        default="build",
        min_length=1,
        description="Build-state root, relative to the project workspace",
    )
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Database connection URL for build history",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    podman_binary: str = Field(
        default="podman",
        description="Container engine executable used to drive the sandbox",
    )
    sandbox_suffix: str | None = Field(
        default=None,
        pattern=r"^[a-zA-Z0-9_.\-]+$",
        description="Optional build identifier appended to the sandbox name",
    )

    # Sandbox images
    fedora_image: str = Field(
        default="registry.fedoraproject.org/fedora:latest",
        description="Sandbox image for Fedora builds",
    )
    debian_image: str = Field(
        default="docker.io/library/debian:stable",
        description="Sandbox image for Debian builds",
    )

    # Distro sources
    fedora_release: str | None = Field(
        default=None,
        description="Fedora release for rootfs and ISO (default: the sandbox's own)",
    )
    debian_suite: str = Field(
        default="stable",
        description="Debian release channel passed to debootstrap",
    )
    debian_mirror: str = Field(
        default="http://deb.debian.org/debian",
        description="Debian mirror passed to debootstrap",
    )

    @field_validator("build_dir")
    @classmethod
    def validate_build_dir(cls, v: str) -> str:
        """Keep the build-state root inside the project workspace."""
        path = PurePosixPath(v)
        if path.is_absolute() or not path.parts or ".." in path.parts:
            raise ValueError(
                f"build_dir must be a relative path inside the workspace, got {v!r}"
            )
        return v


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
