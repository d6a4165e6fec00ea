"""Distro-specific pipeline stages.

This module handles:
- Selecting the command table for the configured distro
- Reading the package lists and repo definitions from the workspace
- Running each distro stage through the StageExecutor, with progress

Optional inputs that are absent turn their stage into a no-op that still
emits its start and end progress events.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ulb.config import Settings
from ulb.distros import debian, fedora
from ulb.distros.base import CommandContext, DistroCommands, join_args
from ulb.errors import ConfigError
from ulb.manifest import PACKAGE_LIST, REMOVE_LIST, REPOS_DIR, BuildConfig, read_list
from ulb.progress import ProgressReporter
from ulb.sandbox.executor import StageExecutor
from ulb.sandbox.podman import SandboxHandle
from ulb.types import Distro, Stage
from ulb.workspace import Workspace, iso_name

logger = logging.getLogger(__name__)

DISTRO_COMMANDS: dict[Distro, DistroCommands] = {
    Distro.FEDORA: fedora.COMMANDS,
    Distro.DEBIAN: debian.COMMANDS,
}


def resolve_distro(value: Distro | str) -> Distro:
    """Coerce a distro value, rejecting anything without a command table.

    Raises:
        ConfigError: If the distro is not supported.
    """
    try:
        distro = Distro(value)
    except ValueError:
        supported = ", ".join(d.value for d in DISTRO_COMMANDS)
        raise ConfigError(
            f"Unsupported distro: {value} (supported: {supported})"
        ) from None
    if distro not in DISTRO_COMMANDS:
        raise ConfigError(f"Unsupported distro: {distro.value}")
    return distro


class DistroProvider:
    """Run the distro-dependent stages for one build."""

    def __init__(
        self,
        config: BuildConfig,
        workspace: Workspace,
        executor: StageExecutor,
        settings: Settings,
    ) -> None:
        self.distro = resolve_distro(config.distro)
        self.commands = DISTRO_COMMANDS[self.distro]
        self.config = config
        self.workspace = workspace
        self.executor = executor
        self.settings = settings

    @property
    def arch(self) -> str:
        return self.config.architecture or self.commands.default_arch

    @property
    def image_ref(self) -> str:
        return self.commands.image(self.settings)

    def _context(self) -> CommandContext:
        return CommandContext(
            config=self.config,
            settings=self.settings,
            arch=self.arch,
            rootfs=self.workspace.sandbox_rootfs,
            release_dir=self.workspace.sandbox_release,
        )

    def _run(self, handle: SandboxHandle, commands: list[str], stage: Stage) -> None:
        self.executor.exec_in_sandbox(handle, commands, stage.value)

    def install_packages(self, handle: SandboxHandle, progress: ProgressReporter) -> None:
        """Install the mandatory package list into the sandbox."""
        with progress.stage(Stage.INSTALL_PACKAGES):
            packages = read_list(self.workspace.input_path(PACKAGE_LIST))
            if not packages:
                raise ConfigError(f"{PACKAGE_LIST} file is empty")
            logger.info("Installing %d packages", len(packages))
            self._run(handle, self.commands.install(packages), Stage.INSTALL_PACKAGES)

    def remove_packages(self, handle: SandboxHandle, progress: ProgressReporter) -> None:
        """Remove the packages listed in the optional removal list."""
        with progress.stage(Stage.REMOVE_PACKAGES):
            remove_list = self.workspace.input_path(REMOVE_LIST)
            packages = read_list(remove_list) if remove_list.is_file() else []
            if not packages:
                logger.info("No %s entries, skipping", REMOVE_LIST)
                return
            logger.info("Removing %d packages", len(packages))
            self._run(handle, self.commands.remove(packages), Stage.REMOVE_PACKAGES)

    def build_rootfs(self, handle: SandboxHandle, progress: ProgressReporter) -> None:
        """Bootstrap the target root filesystem tree."""
        with progress.stage(Stage.BUILD_ROOTFS):
            self.workspace.rootfs_dir.mkdir(parents=True, exist_ok=True)
            self._run(
                handle, self.commands.build_rootfs(self._context()), Stage.BUILD_ROOTFS
            )

    def install_installer(self, handle: SandboxHandle, progress: ProgressReporter) -> None:
        """Install the configured installer package, if any."""
        with progress.stage(Stage.INSTALL_INSTALLER):
            if not self.config.installer:
                logger.info("No installer configured, skipping")
                return
            self._run(
                handle,
                self.commands.install([self.config.installer]),
                Stage.INSTALL_INSTALLER,
            )

    def install_custom_packages(
        self, handle: SandboxHandle, progress: ProgressReporter
    ) -> None:
        """Register the workspace's repo definitions and refresh indexes."""
        with progress.stage(Stage.INSTALL_CUSTOM_PACKAGES):
            repos_dir = self.workspace.input_path(REPOS_DIR)
            repo_files: list[Path] = []
            if repos_dir.is_dir():
                repo_files = sorted(p for p in repos_dir.iterdir() if p.is_file())
            if not repo_files:
                logger.info("No %s definitions, skipping", REPOS_DIR)
                return
            sources = [str(self.workspace.sandbox_path(p)) for p in repo_files]
            commands = [f"cp {join_args(sources)} {self.commands.repo_config_dir}/"]
            commands.extend(self.commands.refresh())
            self._run(handle, commands, Stage.INSTALL_CUSTOM_PACKAGES)

    def create_iso(
        self, handle: SandboxHandle, progress: ProgressReporter, release: bool
    ) -> Path:
        """Master the ISO from the root filesystem tree.

        Returns:
            Host path of the produced ISO.
        """
        name = iso_name(release)
        iso_path = self.workspace.release_dir / name
        with progress.stage(Stage.CREATE_ISO):
            self._run(
                handle,
                self.commands.create_iso(self._context(), name, release),
                Stage.CREATE_ISO,
            )
        logger.info("Image written to %s", iso_path)
        return iso_path


__all__ = ["DISTRO_COMMANDS", "DistroProvider", "resolve_distro"]
