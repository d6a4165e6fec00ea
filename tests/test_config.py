"""Tests for configuration module."""

import json
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from ulb.config import Settings, get_settings, print_settings_json


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.build_dir == "build"
        assert "sqlite" in settings.db_url
        assert settings.db_url.endswith("db.sqlite")
        assert settings.log_level == "INFO"
        assert settings.podman_binary == "podman"
        assert settings.sandbox_suffix is None
        assert settings.fedora_image == "registry.fedoraproject.org/fedora:latest"
        assert settings.debian_image == "docker.io/library/debian:stable"
        assert settings.fedora_release is None
        assert settings.debian_suite == "stable"

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "ULB_LOG_LEVEL": "DEBUG",
                "ULB_PODMAN_BINARY": "/usr/local/bin/podman",
                "ULB_SANDBOX_SUFFIX": "ci-42",
                "ULB_FEDORA_RELEASE": "41",
            },
        ):
            settings = Settings()
            assert settings.log_level == "DEBUG"
            assert settings.podman_binary == "/usr/local/bin/podman"
            assert settings.sandbox_suffix == "ci-42"
            assert settings.fedora_release == "41"

    def test_image_overrides_from_env(self) -> None:
        """Sandbox images should be configurable via env."""
        with patch.dict(
            os.environ,
            {
                "ULB_FEDORA_IMAGE": "quay.io/fedora/fedora:41",
                "ULB_DEBIAN_IMAGE": "debian:bookworm",
            },
        ):
            settings = Settings()
            assert settings.fedora_image == "quay.io/fedora/fedora:41"
            assert settings.debian_image == "debian:bookworm"

    def test_invalid_sandbox_suffix(self) -> None:
        """Suffixes must be usable in a container name."""
        with pytest.raises(ValidationError):
            Settings(sandbox_suffix="has space")

    def test_invalid_log_level(self) -> None:
        """Unknown log levels should be rejected."""
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    @pytest.mark.parametrize("build_dir", ["/abs/build", "../out", "out/../..", "."])
    def test_build_dir_outside_workspace(self, build_dir) -> None:
        """build_dir must stay inside the project directory."""
        with pytest.raises(ValidationError, match="build_dir"):
            Settings(build_dir=build_dir)

    def test_nested_build_dir(self) -> None:
        settings = Settings(build_dir="out/build")
        assert settings.build_dir == "out/build"


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        settings = Settings()
        parsed = json.loads(print_settings_json(settings))

        assert "build_dir" in parsed
        assert "db_url" in parsed
        assert "fedora_image" in parsed
        assert "debian_image" in parsed

    def test_print_settings_json_default(self) -> None:
        """print_settings_json without args should use default settings."""
        parsed = json.loads(print_settings_json())
        assert "podman_binary" in parsed
