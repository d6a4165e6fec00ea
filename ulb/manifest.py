"""Build manifest loading and validation.

This module handles:
- The BuildConfig model read from the project's Config.toml
- Loading the manifest from TOML, YAML or JSON by file extension
- Pre-build validation of the workspace inputs
- Reading newline-delimited package list files

Every failure surfaces as ConfigError, before any sandbox work begins.
"""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ulb.errors import ConfigError
from ulb.types import Distro

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "Config.toml"

# Workspace-relative inputs
PACKAGE_LIST = "package-lists"
REMOVE_LIST = "packages-lists-remove"
SCRIPTS_DIR = "scripts"
FILES_DIR = "files"
INSTALL_FILES_DIR = "install-files"
REPOS_DIR = "repos"


class BuildConfig(BaseModel):
    """Build manifest for one live image.

    Attributes:
        distro: Target distribution.
        image_name: Product name of the image (non-empty).
        installer: Optional installer package to add to the build.
        architecture: Optional target architecture (distro default if unset).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    distro: Distro = Field(description="Target distribution")
    image_name: str = Field(description="Name of the produced image")
    installer: str | None = Field(default=None, description="Installer package")
    architecture: str | None = Field(default=None, description="Target arch")

    @field_validator("image_name")
    @classmethod
    def validate_image_name(cls, v: str) -> str:
        """Validate image_name is not blank."""
        if not v.strip():
            raise ValueError("image_name cannot be empty")
        return v

    @field_validator("installer", "architecture")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat blank optional strings as unset."""
        if v is not None and not v.strip():
            return None
        return v


def _load_mapping(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    with open(path, "rb") as f:
        if suffix == ".toml":
            data = tomllib.load(f)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ConfigError(
                f"Unsupported config format: {suffix or path.name}. "
                "Use .toml, .yaml, .yml, or .json"
            )
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return data


def parse_config(data: dict[str, Any]) -> BuildConfig:
    """Validate raw manifest data into a BuildConfig.

    Args:
        data: Parsed manifest content.

    Returns:
        Validated, immutable BuildConfig.

    Raises:
        ConfigError: If the data does not match the schema.
    """
    try:
        return BuildConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid build config: {problems}") from e


def load_config(path: Path) -> BuildConfig:
    """Load and validate a build manifest from disk.

    Args:
        path: Path to Config.toml (or a .yaml/.yml/.json equivalent).

    Returns:
        Validated BuildConfig.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = _load_mapping(path)
    except (OSError, tomllib.TOMLDecodeError, yaml.YAMLError, ValueError) as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e
    config = parse_config(data)
    logger.debug("Loaded config from %s: %s", path, config)
    return config


def read_list(path: Path) -> list[str]:
    """Read a newline-delimited list file.

    Blank lines and lines starting with '#' are ignored.

    Args:
        path: Path to the list file.

    Returns:
        Entries in file order.
    """
    entries: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            entries.append(stripped)
    return entries


def validate_workspace(config: BuildConfig, workspace: Path) -> None:
    """Check the workspace inputs required before a build can start.

    Args:
        config: Loaded build config.
        workspace: Directory holding the config and its inputs.

    Raises:
        ConfigError: If the mandatory package list is missing or empty.
    """
    package_list = workspace / PACKAGE_LIST
    if not package_list.is_file():
        raise ConfigError(f"{PACKAGE_LIST} file is missing: {package_list}")
    try:
        packages = read_list(package_list)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read {package_list}: {e}") from e
    if not packages:
        raise ConfigError(f"{PACKAGE_LIST} file is empty: {package_list}")
    logger.info(
        "Validated workspace %s for %s (%d packages)",
        workspace,
        config.distro.value,
        len(packages),
    )


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "FILES_DIR",
    "INSTALL_FILES_DIR",
    "PACKAGE_LIST",
    "REMOVE_LIST",
    "REPOS_DIR",
    "SCRIPTS_DIR",
    "BuildConfig",
    "load_config",
    "parse_config",
    "read_list",
    "validate_workspace",
]
