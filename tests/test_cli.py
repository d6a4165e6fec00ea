"""Tests for the CLI.

Builds run against the recording podman stand-in from conftest, and every
test gets its own history database through ULB_DB_URL.
"""

import json
import os
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from conftest import write_project
from ulb import __version__
from ulb.cli import app, exit_code_for
from ulb.db import open_history
from ulb.errors import ConfigError, CopyError, SandboxError, StageError, UlbError
from ulb.history import create_build_record

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path):
    """Point the CLI at a per-test database and keep logs quiet."""
    with patch.dict(
        os.environ,
        {
            "ULB_DB_URL": f"sqlite:///{tmp_path / 'state' / 'db.sqlite'}",
            "ULB_LOG_LEVEL": "WARNING",
        },
    ):
        yield


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Universal Live Builder" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout

    def test_commands_listed(self) -> None:
        result = runner.invoke(app, ["--help"])
        for command in ("build", "clean", "status", "init", "config", "history"):
            assert command in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command_shows_all_sections(self) -> None:
        """CLI config should show every settings section."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Paths:" in result.stdout
        assert "Operational:" in result.stdout
        assert "Sandbox images:" in result.stdout
        assert "Distro sources:" in result.stdout

    def test_config_json(self) -> None:
        """CLI config --json should output valid JSON."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["log_level"] == "WARNING"
        assert parsed["podman_binary"] == "podman"


class TestCLIInit:
    """Test CLI init command."""

    def test_init_creates_project(self, tmp_path) -> None:
        project = tmp_path / "live"
        result = runner.invoke(app, ["init", str(project)])

        assert result.exit_code == 0
        assert "Project initialised" in result.stdout
        assert (project / "Config.toml").is_file()
        assert (project / "package-lists").is_file()

    def test_init_twice(self, tmp_path) -> None:
        runner.invoke(app, ["init", str(tmp_path)])
        result = runner.invoke(app, ["init", str(tmp_path)])

        assert result.exit_code == 0
        assert "already initialised" in result.stdout


class TestCLIClean:
    """Test CLI clean command."""

    def test_clean_removes_cache(self, tmp_path) -> None:
        runner.invoke(app, ["init", str(tmp_path)])
        (tmp_path / "build" / "release" / "debug.iso").write_bytes(b"iso")

        result = runner.invoke(app, ["clean", str(tmp_path / "Config.toml")])

        assert result.exit_code == 0
        assert "Cache cleaned" in result.stdout
        assert not (tmp_path / "build" / ".cache").exists()
        assert (tmp_path / "build" / "release" / "debug.iso").exists()

    def test_clean_without_cache(self, tmp_path) -> None:
        result = runner.invoke(app, ["clean", str(tmp_path / "Config.toml")])
        assert result.exit_code == 0
        assert "No cache" in result.stdout


class TestCLIStatus:
    """Test CLI status command."""

    def test_status(self, fake_podman, fedora_project) -> None:
        result = runner.invoke(app, ["status", str(fedora_project)])

        assert result.exit_code == 0
        assert "Distro: fedora" in result.stdout
        assert "Image name: test-iso" in result.stdout
        assert fake_podman.calls == [["podman", "--version"]]

    def test_status_json(self, fake_podman, debian_project) -> None:
        result = runner.invoke(app, ["status", str(debian_project), "--json"])

        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["distro"] == "debian"
        assert parsed["podman_available"] is True
        assert parsed["version"] == __version__

    def test_status_podman_missing(self, fake_podman, fedora_project) -> None:
        fake_podman.fail_on("--version", exit_code=127)
        result = runner.invoke(app, ["status", str(fedora_project)])

        assert result.exit_code == 0
        assert "not available" in result.stdout

    def test_status_bad_config(self, fake_podman, tmp_path) -> None:
        result = runner.invoke(app, ["status", str(tmp_path / "Config.toml")])
        assert result.exit_code == 1
        assert fake_podman.calls == []


class TestCLIBuild:
    """Test CLI build command."""

    def test_build_success(self, fake_podman, fedora_project) -> None:
        result = runner.invoke(app, ["build", str(fedora_project)])

        assert result.exit_code == 0
        assert "Image built" in result.output
        assert "Stage: create_iso, Progress: 1.0" in result.output
        assert fake_podman.subcommands[-2:] == ["stop", "rm"]

    def test_build_json_output(self, fake_podman, fedora_project) -> None:
        """Structured progress: one JSON object per line, two per stage."""
        result = runner.invoke(app, ["build", str(fedora_project), "--json-output"])

        assert result.exit_code == 0
        lines = [json.loads(line) for line in result.stdout.splitlines()]
        assert len(lines) == 20
        assert lines[0] == {"stage": "provision", "progress": 0.0}
        assert lines[-1] == {"stage": "teardown", "progress": 1.0}

    def test_build_release_flag(self, fake_podman, fedora_project) -> None:
        result = runner.invoke(app, ["build", str(fedora_project), "--release"])

        assert result.exit_code == 0
        assert "--isfinal" in fake_podman.exec_commands[-1]

    def test_build_config_error(self, fake_podman, tmp_path) -> None:
        path = write_project(tmp_path, packages="")
        result = runner.invoke(app, ["build", str(path)])

        assert result.exit_code == 1
        assert "config_error" in result.output
        assert fake_podman.calls == []

    def test_build_sandbox_error(self, fake_podman, fedora_project) -> None:
        fake_podman.fail_on("", subcommand="pull")
        result = runner.invoke(app, ["build", str(fedora_project)])

        assert result.exit_code == 2
        assert "sandbox_pull_failed" in result.output

    def test_build_stage_error(self, fake_podman, fedora_project) -> None:
        fake_podman.fail_on("lorax", subcommand="exec")
        result = runner.invoke(app, ["build", str(fedora_project)])

        assert result.exit_code == 3
        assert "stage_failed" in result.output
        assert fake_podman.subcommands.count("rm") == 1


class TestCLIHistory:
    """Test CLI history command."""

    def test_history_empty(self) -> None:
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No builds found" in result.stdout

    def test_history_after_builds(self, fake_podman, fedora_project) -> None:
        runner.invoke(app, ["build", str(fedora_project)])
        fake_podman.fail_on("@core", subcommand="exec")
        runner.invoke(app, ["build", str(fedora_project)])

        result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "Found 2 build(s)" in result.stdout
        assert "Failed stage: build_rootfs" in result.stdout

    def test_history_json(self, fake_podman, fedora_project) -> None:
        runner.invoke(app, ["build", str(fedora_project)])

        result = runner.invoke(app, ["history", "--json"])

        assert result.exit_code == 0
        (record,) = json.loads(result.stdout)
        assert record["status"] == "succeeded"
        assert record["iso_path"].endswith("debug.iso")

    def test_history_distro_filter(self, fake_podman, fedora_project) -> None:
        runner.invoke(app, ["build", str(fedora_project)])

        result = runner.invoke(app, ["history", "--distro", "debian", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_history_json_keeps_bracketed_errors(self) -> None:
        """Error text that looks like console markup is printed verbatim."""
        message = "cp: cannot stat [/workspace/files/x]: [bold] No such file"
        with open_history(os.environ["ULB_DB_URL"])() as session:
            record = create_build_record(
                session,
                distro="debian",
                image_name="live",
                config_path="/p/Config.toml",
                release=False,
            )
            record.mark_failed(
                error_type="stage_failed", message=message, stage="copy_files"
            )
            session.commit()

        result = runner.invoke(app, ["history", "--json"])

        assert result.exit_code == 0
        (entry,) = json.loads(result.stdout)
        assert entry["error_message"] == message
        assert entry["failed_stage"] == "copy_files"


class TestExitCodes:
    """Test exit_code_for mapping."""

    def test_mapping(self) -> None:
        assert exit_code_for(ConfigError("bad")) == 1
        assert exit_code_for(SandboxError("start", "boom")) == 2
        assert exit_code_for(StageError("create_iso", "lorax")) == 3
        assert exit_code_for(CopyError("/a", "/b", "run_scripts", "podman cp")) == 3
        assert exit_code_for(UlbError("other", code="other")) == 1


class TestCLISettingsErrors:
    """Invalid tool settings stop the CLI before any work starts."""

    def test_absolute_build_dir(self, fake_podman, fedora_project) -> None:
        with patch.dict(os.environ, {"ULB_BUILD_DIR": "/var/tmp/out"}):
            result = runner.invoke(app, ["build", str(fedora_project)])

        assert result.exit_code == 1
        assert "build_dir" in result.output
        assert fake_podman.calls == []

    def test_parent_build_dir(self, fake_podman, fedora_project) -> None:
        with patch.dict(os.environ, {"ULB_BUILD_DIR": "../out"}):
            result = runner.invoke(app, ["build", str(fedora_project)])

        assert result.exit_code == 1
        assert fake_podman.calls == []
