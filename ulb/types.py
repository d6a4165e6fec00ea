"""Shared type definitions for ulb.

This module contains enums and dataclasses shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class Distro(str, Enum):
    """Supported target distributions."""

    FEDORA = "fedora"
    DEBIAN = "debian"


class BuildStatus(str, Enum):
    """Status of a build invocation."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Stage(str, Enum):
    """Pipeline stages, declared in execution order."""

    PROVISION = "provision"
    INSTALL_PACKAGES = "install_packages"
    REMOVE_PACKAGES = "remove_packages"
    RUN_SCRIPTS = "run_scripts"
    BUILD_ROOTFS = "build_rootfs"
    COPY_FILES = "copy_files"
    INSTALL_INSTALLER = "install_installer"
    INSTALL_CUSTOM_PACKAGES = "install_custom_packages"
    CREATE_ISO = "create_iso"
    TEARDOWN = "teardown"

    @classmethod
    def ordered(cls) -> tuple["Stage", ...]:
        """Return all stages in their fixed execution order."""
        return tuple(cls)

    @property
    def position(self) -> int:
        """Zero-based ordinal of this stage in the pipeline."""
        return Stage.ordered().index(self)


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification for a stage."""

    stage: str
    progress: float
    message: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Convert to the wire shape used by structured progress output."""
        data: dict[str, object] = {"stage": self.stage, "progress": self.progress}
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class CommandResult:
    """Result of one podman invocation."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Whether the command exited with status zero."""
        return self.exit_code == 0


__all__ = [
    "BuildStatus",
    "CommandResult",
    "Distro",
    "ProgressEvent",
    "Stage",
]
