"""Sandbox provisioning and teardown.

This module handles:
- Pulling the sandbox image
- Creating the container with the workspace and cache bind mounts
- Starting it, and stopping and removing it afterwards

Teardown never raises. It usually runs while an earlier error is already
propagating and must not replace it.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from ulb.errors import SandboxError, excerpt_stderr
from ulb.sandbox.podman import SandboxHandle, run_podman
from ulb.types import Distro

logger = logging.getLogger(__name__)

# Keeps the container alive between exec calls
KEEPALIVE_COMMAND = ["sleep", "infinity"]


def sandbox_name(distro: Distro, suffix: str | None = None) -> str:
    """Return the deterministic container name for a distro.

    Two builds of the same distro without distinct suffixes collide.

    Args:
        distro: Target distribution.
        suffix: Optional build identifier.

    Returns:
        Container name.
    """
    name = f"ulb-{distro.value}-builder"
    if suffix:
        name = f"{name}-{suffix}"
    return name


class SandboxController:
    """Provision and tear down the podman build container."""

    def __init__(self, name: str, podman_binary: str = "podman") -> None:
        self.name = name
        self.podman_binary = podman_binary

    def _run(self, step: str, args: list[str]) -> None:
        logger.info("Sandbox %s: %s", step, self.name)
        result = run_podman(args, binary=self.podman_binary)
        if not result.success:
            detail = excerpt_stderr(result.stderr) or f"exit code {result.exit_code}"
            logger.error("Sandbox %s failed for %s: %s", step, self.name, detail)
            raise SandboxError(step, detail)

    def provision(
        self, image_ref: str, mounts: dict[Path, PurePosixPath]
    ) -> SandboxHandle:
        """Pull the image, then create and start the sandbox.

        If any step fails, teardown is attempted on the partial sandbox
        before the error propagates.

        Args:
            image_ref: Container image reference.
            mounts: Host directory -> in-sandbox path bindings.

        Returns:
            Handle for the running sandbox.

        Raises:
            SandboxError: Naming the failing step (pull, create, start).
        """
        handle = SandboxHandle(name=self.name, image=image_ref, mounts=dict(mounts))

        create_args = ["create", "--name", self.name]
        for host_path, sandbox_path in mounts.items():
            create_args.extend(["-v", f"{host_path}:{sandbox_path}"])
        create_args.append(image_ref)
        create_args.extend(KEEPALIVE_COMMAND)

        try:
            self._run("pull", ["pull", image_ref])
            self._run("create", create_args)
            self._run("start", ["start", self.name])
        except SandboxError:
            self.teardown(handle)
            raise

        logger.info("Sandbox %s running from %s", self.name, image_ref)
        return handle

    def teardown(self, handle: SandboxHandle) -> None:
        """Stop and remove the sandbox, logging and swallowing failures.

        Runs at most once per handle.

        Args:
            handle: Handle returned by provision (or the partial handle).
        """
        if handle.released:
            logger.debug("Sandbox %s already torn down", handle.name)
            return
        handle.released = True

        logger.info("Cleaning up sandbox %s", handle.name)
        for step, args in (
            ("stop", ["stop", handle.name]),
            ("rm", ["rm", handle.name]),
        ):
            try:
                result = run_podman(args, binary=self.podman_binary)
            except Exception:
                logger.exception("Sandbox %s raised for %s", step, handle.name)
                continue
            if not result.success:
                logger.warning(
                    "Sandbox %s failed for %s (exit %d): %s",
                    step,
                    handle.name,
                    result.exit_code,
                    excerpt_stderr(result.stderr),
                )


__all__ = ["SandboxController", "sandbox_name"]
