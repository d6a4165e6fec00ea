"""Thin wrapper around the podman command-line interface.

Every interaction with the container engine goes through run_podman(),
so tests only need to patch subprocess.run in this module.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from ulb.types import CommandResult

logger = logging.getLogger(__name__)

# Exit status reported when the engine binary cannot be launched at all
LAUNCH_FAILURE_EXIT = 127


@dataclass
class SandboxHandle:
    """Opaque reference to a provisioned sandbox container.

    Attributes:
        name: Container name (deterministic per distro).
        image: Image reference the container was created from.
        mounts: Host directory -> in-sandbox path bindings.
        released: Set once teardown has run for this handle.
    """

    name: str
    image: str
    mounts: dict[Path, PurePosixPath] = field(default_factory=dict)
    released: bool = False


def run_podman(args: list[str], binary: str = "podman") -> CommandResult:
    """Run one podman command and capture its output.

    A failure to launch the binary is reported as a non-zero CommandResult
    rather than raised, so callers handle one failure shape.

    Args:
        args: Arguments after the podman binary.
        binary: Container engine executable.

    Returns:
        CommandResult with exit code, stdout and stderr.
    """
    cmd = [binary, *args]
    logger.debug("Running: %s", shlex.join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.error("Failed to execute %s: %s", binary, e)
        return CommandResult(exit_code=LAUNCH_FAILURE_EXIT, stdout="", stderr=str(e))

    return CommandResult(
        exit_code=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
    )


def podman_available(binary: str = "podman") -> bool:
    """Check whether the container engine responds to --version."""
    return run_podman(["--version"], binary=binary).success


__all__ = ["LAUNCH_FAILURE_EXIT", "SandboxHandle", "podman_available", "run_podman"]
