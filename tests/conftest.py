"""Shared fixtures: a recording podman stand-in and a project workspace."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from ulb.config import Settings


class FakePodman:
    """Record podman invocations and answer them with configured exit codes."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._failures: list[tuple[str | None, str, int, str]] = []

    def fail_on(
        self,
        fragment: str,
        subcommand: str | None = None,
        exit_code: int = 1,
        stderr: str = "boom",
    ) -> None:
        """Fail the first matching call (and any later ones)."""
        self._failures.append((subcommand, fragment, exit_code, stderr))

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        joined = " ".join(cmd)
        for subcommand, fragment, exit_code, stderr in self._failures:
            if subcommand is not None and cmd[1] != subcommand:
                continue
            if fragment in joined:
                return subprocess.CompletedProcess(cmd, exit_code, "", stderr)
        return subprocess.CompletedProcess(cmd, 0, "ok\n", "")

    @property
    def subcommands(self) -> list[str]:
        return [c[1] for c in self.calls]

    @property
    def exec_commands(self) -> list[str]:
        """Shell command strings passed to `podman exec ... bash -c`."""
        return [c[-1] for c in self.calls if c[1] == "exec"]


@pytest.fixture
def fake_podman():
    """Patch subprocess.run under the podman wrapper with a FakePodman."""
    fake = FakePodman()
    with patch("ulb.sandbox.podman.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment."""
    return Settings(db_url="sqlite:///:memory:", log_level="DEBUG")


def write_project(
    root: Path,
    distro: str = "fedora",
    packages: str = "vim\nbash\n",
    extra: str = "",
) -> Path:
    """Write Config.toml and package-lists into root; return the config path."""
    root.mkdir(parents=True, exist_ok=True)
    config_path = root / "Config.toml"
    config_path.write_text(
        f'distro = "{distro}"\nimage_name = "test-iso"\n{extra}', encoding="utf-8"
    )
    (root / "package-lists").write_text(packages, encoding="utf-8")
    return config_path


@pytest.fixture
def fedora_project(tmp_path) -> Path:
    """A minimal Fedora project; returns the config path."""
    return write_project(tmp_path / "project")


@pytest.fixture
def debian_project(tmp_path) -> Path:
    """A minimal Debian project; returns the config path."""
    return write_project(tmp_path / "project", distro="debian")
