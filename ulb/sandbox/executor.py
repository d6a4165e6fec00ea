"""Command execution inside an active sandbox.

Commands run one at a time through `podman exec <name> bash -c <command>`.
The first non-zero exit stops the list and raises StageError; standard
output is only ever logged at DEBUG level.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path, PurePosixPath

from ulb.errors import CopyError, StageError, excerpt_stderr
from ulb.sandbox.podman import SandboxHandle, run_podman
from ulb.types import CommandResult

logger = logging.getLogger(__name__)


class StageExecutor:
    """Run stage commands and file copies against a sandbox."""

    def __init__(self, podman_binary: str = "podman") -> None:
        self.podman_binary = podman_binary

    def exec_in_sandbox(
        self,
        handle: SandboxHandle,
        commands: list[str],
        stage: str,
    ) -> list[CommandResult]:
        """Run shell commands in order, stopping at the first failure.

        Args:
            handle: Active sandbox.
            commands: Shell command strings, each run by its own bash.
            stage: Stage name used in logs and errors.

        Returns:
            One CommandResult per command, all successful.

        Raises:
            StageError: On the first command exiting non-zero.
        """
        results: list[CommandResult] = []
        for command in commands:
            logger.info("[%s] %s", stage, command)
            result = run_podman(
                ["exec", handle.name, "bash", "-c", command],
                binary=self.podman_binary,
            )
            if not result.success:
                logger.error(
                    "Command failed in %s: %s - stderr: %s",
                    stage,
                    command,
                    excerpt_stderr(result.stderr),
                )
                raise StageError(
                    stage,
                    command,
                    stderr=result.stderr,
                    exit_code=result.exit_code,
                )
            if result.stdout:
                logger.debug("Command output in %s: %s", stage, result.stdout)
            results.append(result)
        return results

    def copy_into_sandbox(
        self,
        host_path: Path,
        handle: SandboxHandle,
        dest_path: PurePosixPath | str,
        stage: str = "copy",
    ) -> None:
        """Copy a single host file into the sandbox filesystem.

        Args:
            host_path: File on the host.
            handle: Active sandbox.
            dest_path: Absolute destination path inside the sandbox.
            stage: Stage name used in logs and errors.

        Raises:
            CopyError: If podman cp exits non-zero.
        """
        target = f"{handle.name}:{dest_path}"
        args = ["cp", str(host_path), target]
        logger.info("[%s] copy %s -> %s", stage, host_path, target)
        result = run_podman(args, binary=self.podman_binary)
        if not result.success:
            command = shlex.join([self.podman_binary, *args])
            logger.error(
                "Copy failed in %s: %s - stderr: %s",
                stage,
                command,
                excerpt_stderr(result.stderr),
            )
            raise CopyError(
                str(host_path),
                str(dest_path),
                stage=stage,
                command=command,
                stderr=result.stderr,
                exit_code=result.exit_code,
            )


__all__ = ["StageExecutor"]
