"""Build pipeline orchestration.

This module provides the high-level build API:
- Pipeline: runs every stage in fixed order against one sandbox
- run_build(): main entry point - validate, record, and run a build

Stage order is fixed:
provision -> install_packages -> remove_packages -> run_scripts ->
build_rootfs -> copy_files -> install_installer -> install_custom_packages ->
create_iso -> teardown

The sandbox is held in a context manager; teardown runs exactly once on
success, on a stage failure, and on any other exception, and the original
error keeps propagating.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

from ulb.config import get_settings
from ulb.distros import DistroProvider
from ulb.errors import StageError, UlbError
from ulb.history import create_build_record
from ulb.manifest import (
    FILES_DIR,
    INSTALL_FILES_DIR,
    SCRIPTS_DIR,
    load_config,
    validate_workspace,
)
from ulb.progress import ProgressReporter
from ulb.sandbox.controller import SandboxController, sandbox_name
from ulb.sandbox.executor import StageExecutor
from ulb.sandbox.podman import SandboxHandle
from ulb.types import Stage
from ulb.workspace import INSTALL_FILES_DEST, Workspace

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from ulb.config import Settings

logger = logging.getLogger(__name__)

# Scripts are staged here inside the sandbox before running
SCRIPT_STAGING_DIR = PurePosixPath("/tmp")


@dataclass
class PipelineResult:
    """Outcome of a successful pipeline run.

    Attributes:
        iso_path: Host path of the produced ISO.
        release: Whether this was a release build.
        stages: Stages completed, in order.
    """

    iso_path: Path
    release: bool
    stages: list[Stage] = field(default_factory=list)


def list_scripts(scripts_dir: Path) -> list[Path]:
    """Return the *.sh files in a directory, sorted lexically by filename.

    Args:
        scripts_dir: Host scripts directory (may be absent).

    Returns:
        Script paths in execution order.
    """
    if not scripts_dir.is_dir():
        return []
    scripts = [p for p in scripts_dir.iterdir() if p.is_file() and p.suffix == ".sh"]
    return sorted(scripts, key=lambda p: p.name)


class Pipeline:
    """Drive one build through every stage against a single sandbox."""

    def __init__(
        self,
        provider: DistroProvider,
        controller: SandboxController,
        executor: StageExecutor,
        reporter: ProgressReporter,
        workspace: Workspace,
    ) -> None:
        self.provider = provider
        self.controller = controller
        self.executor = executor
        self.reporter = reporter
        self.workspace = workspace
        self.current_stage: Stage | None = None
        self.completed: list[Stage] = []

    def _enter(self, stage: Stage) -> None:
        self.current_stage = stage
        logger.debug("Entering stage %d: %s", stage.position, stage.value)

    def _done(self, stage: Stage) -> None:
        self.completed.append(stage)

    def _step(self, stage: Stage, func: Callable[..., Any], *args: Any) -> Any:
        self._enter(stage)
        result = func(*args)
        self._done(stage)
        return result

    @contextmanager
    def sandbox(self) -> Iterator[SandboxHandle]:
        """Provision the sandbox and guarantee its teardown.

        Teardown progress events are best-effort; teardown itself always runs.

        Yields:
            Handle for the running sandbox.
        """
        self._enter(Stage.PROVISION)
        with self.reporter.stage(Stage.PROVISION):
            handle = self.controller.provision(
                self.provider.image_ref, self.workspace.mounts()
            )
        self._done(Stage.PROVISION)
        try:
            yield handle
        finally:
            try:
                self._report_teardown(0.0)
            finally:
                self.controller.teardown(handle)
            self._report_teardown(1.0)
            self._done(Stage.TEARDOWN)

    def _report_teardown(self, progress: float) -> None:
        # Runs while an earlier error may be propagating; must not replace it
        try:
            self.reporter.emit(Stage.TEARDOWN, progress)
        except Exception:
            logger.exception("Failed to report teardown progress %.1f", progress)

    def run_scripts(self, handle: SandboxHandle) -> None:
        """Run the workspace's scripts/*.sh in lexical filename order.

        Each script is copied into the sandbox, executed, and its copy
        removed before the next one starts.
        """
        stage = Stage.RUN_SCRIPTS
        with self.reporter.stage(stage):
            scripts = list_scripts(self.workspace.input_path(SCRIPTS_DIR))
            if not scripts:
                logger.info("No scripts to run, skipping")
                return
            for script in scripts:
                remote = SCRIPT_STAGING_DIR / script.name
                quoted = shlex.quote(str(remote))
                self.executor.copy_into_sandbox(script, handle, remote, stage=stage.value)
                self.executor.exec_in_sandbox(
                    handle, [f"bash {quoted}", f"rm -f {quoted}"], stage.value
                )

    def copy_files(self, handle: SandboxHandle) -> None:
        """Copy files/ onto the rootfs root and install-files/ into the rootfs."""
        stage = Stage.COPY_FILES
        rootfs = self.workspace.sandbox_rootfs
        quoted_rootfs = shlex.quote(f"{rootfs}/")
        with self.reporter.stage(stage):
            files_dir = self.workspace.input_path(FILES_DIR)
            if files_dir.is_dir():
                source = shlex.quote(f"{self.workspace.sandbox_path(files_dir)}/.")
                self.executor.exec_in_sandbox(
                    handle, [f"cp -a {source} {quoted_rootfs}"], stage.value
                )
            else:
                logger.info("No %s directory, skipping", FILES_DIR)

            install_files_dir = self.workspace.input_path(INSTALL_FILES_DIR)
            if install_files_dir.is_dir():
                dest = rootfs / INSTALL_FILES_DEST
                quoted_dest = shlex.quote(str(dest))
                source = shlex.quote(
                    f"{self.workspace.sandbox_path(install_files_dir)}/."
                )
                self.executor.exec_in_sandbox(
                    handle,
                    [
                        f"mkdir -p {quoted_dest}",
                        f"cp -a {source} {shlex.quote(f'{dest}/')}",
                    ],
                    stage.value,
                )
            else:
                logger.info("No %s directory, skipping", INSTALL_FILES_DIR)

    def run(self, release: bool) -> PipelineResult:
        """Run every stage in order.

        Args:
            release: Produce release.iso instead of debug.iso.

        Returns:
            PipelineResult with the ISO path.

        Raises:
            SandboxError: If the sandbox cannot be provisioned.
            StageError: If any stage command fails (CopyError included).
        """
        provider = self.provider
        progress = self.reporter
        with self.sandbox() as handle:
            self._step(Stage.INSTALL_PACKAGES, provider.install_packages, handle, progress)
            self._step(Stage.REMOVE_PACKAGES, provider.remove_packages, handle, progress)
            self._step(Stage.RUN_SCRIPTS, self.run_scripts, handle)
            self._step(Stage.BUILD_ROOTFS, provider.build_rootfs, handle, progress)
            self._step(Stage.COPY_FILES, self.copy_files, handle)
            self._step(
                Stage.INSTALL_INSTALLER, provider.install_installer, handle, progress
            )
            self._step(
                Stage.INSTALL_CUSTOM_PACKAGES,
                provider.install_custom_packages,
                handle,
                progress,
            )
            iso_path = self._step(
                Stage.CREATE_ISO, provider.create_iso, handle, progress, release
            )

        return PipelineResult(
            iso_path=iso_path, release=release, stages=list(self.completed)
        )


def run_build(
    config_path: Path,
    release: bool = False,
    json_output: bool = False,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
    reporter: ProgressReporter | None = None,
) -> PipelineResult:
    """Validate the config and run a full build.

    This is the main entry point for the build pipeline. It:
    1. Loads the config and validates the workspace (no sandbox yet)
    2. Selects the distro provider
    3. Records the build in history (when a session factory is given)
    4. Runs the Pipeline

    Args:
        config_path: Path to the build config.
        release: Produce release.iso instead of debug.iso.
        json_output: Emit structured JSON progress lines.
        settings: Application settings.
        session_factory: Optional session factory for build history.
        reporter: Optional progress reporter (built from json_output if None).

    Returns:
        PipelineResult with the ISO path.

    Raises:
        ConfigError: If the config or workspace is invalid.
        SandboxError: If the sandbox cannot be provisioned.
        StageError: If any stage command fails.
    """
    if settings is None:
        settings = get_settings()
    if reporter is None:
        reporter = ProgressReporter(json_output=json_output)

    config = load_config(config_path)
    workspace = Workspace.for_config(config_path, settings.build_dir)
    validate_workspace(config, workspace.root)

    executor = StageExecutor(podman_binary=settings.podman_binary)
    provider = DistroProvider(config, workspace, executor, settings)
    controller = SandboxController(
        sandbox_name(provider.distro, settings.sandbox_suffix),
        podman_binary=settings.podman_binary,
    )
    pipeline = Pipeline(provider, controller, executor, reporter, workspace)

    workspace.prepare()
    logger.info(
        "Building %s image %r (%s) in %s",
        provider.distro.value,
        config.image_name,
        "release" if release else "debug",
        workspace.root,
    )

    if session_factory is None:
        return pipeline.run(release)

    with session_factory() as session:
        record = create_build_record(
            session,
            distro=provider.distro.value,
            image_name=config.image_name,
            config_path=str(config_path.resolve()),
            release=release,
        )
        record.mark_running()
        session.commit()

        try:
            result = pipeline.run(release)
        except UlbError as e:
            stage = e.stage if isinstance(e, StageError) else None
            if stage is None and pipeline.current_stage is not None:
                stage = pipeline.current_stage.value
            record.mark_failed(error_type=e.code, message=str(e), stage=stage)
            session.commit()
            logger.error("Build %d failed: %s", record.id, e)
            raise
        except BaseException:
            record.mark_failed(
                error_type="aborted",
                stage=pipeline.current_stage.value if pipeline.current_stage else None,
            )
            session.commit()
            raise

        record.mark_succeeded(str(result.iso_path))
        session.commit()
        logger.info("Build %d succeeded: %s", record.id, result.iso_path)
        return result


__all__ = ["Pipeline", "PipelineResult", "list_scripts", "run_build"]
