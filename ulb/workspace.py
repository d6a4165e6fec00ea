"""Host-side workspace layout.

This module handles:
- Resolving the build-state root, cache, release and rootfs directories
- Preparing those directories before a build
- The explicit cache clean operation
- Initialising a new project skeleton

The workspace is the directory holding the build config. It is bind-mounted
into the sandbox at SANDBOX_WORKSPACE, so every host path below it has a
fixed in-sandbox counterpart.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from ulb.manifest import (
    DEFAULT_CONFIG_NAME,
    FILES_DIR,
    INSTALL_FILES_DIR,
    PACKAGE_LIST,
    REMOVE_LIST,
    REPOS_DIR,
    SCRIPTS_DIR,
)

logger = logging.getLogger(__name__)

# Fixed mount points inside the sandbox
SANDBOX_WORKSPACE = PurePosixPath("/workspace")
SANDBOX_CACHE = PurePosixPath("/cache")

CACHE_DIR_NAME = ".cache"
RELEASE_DIR_NAME = "release"
ROOTFS_DIR_NAME = "rootfs"

# Install-files land here, relative to the rootfs root
INSTALL_FILES_DEST = PurePosixPath("opt/install-files")

SKELETON_CONFIG = """\
distro = "fedora"
image_name = "my-live-iso"
# installer = "anaconda"
# architecture = "x86_64"
"""

SKELETON_PACKAGES = "kernel\nbash\n"


@dataclass(frozen=True)
class Workspace:
    """Resolved host and sandbox paths for one project.

    Attributes:
        root: Project directory (mounted at /workspace).
        build_dir_name: Build-state root, relative to root.
    """

    root: Path
    build_dir_name: str = "build"

    @classmethod
    def for_config(cls, config_path: Path, build_dir_name: str = "build") -> Workspace:
        """Build a Workspace rooted at the directory holding the config."""
        return cls(config_path.resolve().parent, build_dir_name)

    @property
    def build_dir(self) -> Path:
        return self.root / self.build_dir_name

    @property
    def cache_dir(self) -> Path:
        return self.build_dir / CACHE_DIR_NAME

    @property
    def release_dir(self) -> Path:
        return self.build_dir / RELEASE_DIR_NAME

    @property
    def rootfs_dir(self) -> Path:
        return self.build_dir / ROOTFS_DIR_NAME

    def input_path(self, name: str) -> Path:
        """Host path of a workspace input (package list, scripts dir, ...)."""
        return self.root / name

    def sandbox_path(self, host_path: Path) -> PurePosixPath:
        """Translate a host path under the workspace to its sandbox path.

        Raises:
            ValueError: If the path is outside the workspace.
        """
        relative = host_path.relative_to(self.root)
        return SANDBOX_WORKSPACE / PurePosixPath(*relative.parts)

    @property
    def sandbox_rootfs(self) -> PurePosixPath:
        return self.sandbox_path(self.rootfs_dir)

    @property
    def sandbox_release(self) -> PurePosixPath:
        return self.sandbox_path(self.release_dir)

    def mounts(self) -> dict[Path, PurePosixPath]:
        """Host directories bound into the sandbox, host -> sandbox path."""
        return {self.root: SANDBOX_WORKSPACE, self.cache_dir: SANDBOX_CACHE}

    def prepare(self) -> None:
        """Create the cache and release directories if missing."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.release_dir.mkdir(parents=True, exist_ok=True)


def iso_name(release: bool) -> str:
    """Return the output image filename for a release or debug build."""
    return "release.iso" if release else "debug.iso"


def clean_cache(workspace: Workspace) -> bool:
    """Remove the persistent cache directory.

    Must not run concurrently with a build using the same workspace.

    Args:
        workspace: Project workspace.

    Returns:
        True if a cache directory was removed, False if there was none.
    """
    cache_dir = workspace.cache_dir
    if not cache_dir.exists():
        logger.info("No cache to clean at %s", cache_dir)
        return False
    shutil.rmtree(cache_dir)
    logger.info("Cache cleaned: %s", cache_dir)
    return True


def init_project(directory: Path, build_dir_name: str = "build") -> list[Path]:
    """Create a project skeleton, leaving existing files untouched.

    Args:
        directory: Project directory (created if missing).
        build_dir_name: Build-state root name.

    Returns:
        Paths that were created.
    """
    created: list[Path] = []
    workspace = Workspace(directory.resolve(), build_dir_name)

    dirs = [
        workspace.input_path(SCRIPTS_DIR),
        workspace.input_path(FILES_DIR),
        workspace.input_path(INSTALL_FILES_DIR),
        workspace.input_path(REPOS_DIR),
        workspace.release_dir,
        workspace.cache_dir,
    ]
    for d in dirs:
        if not d.exists():
            d.mkdir(parents=True)
            created.append(d)

    files = {
        workspace.input_path(DEFAULT_CONFIG_NAME): SKELETON_CONFIG,
        workspace.input_path(PACKAGE_LIST): SKELETON_PACKAGES,
        workspace.input_path(REMOVE_LIST): "",
    }
    for path, content in files.items():
        if not path.exists():
            path.write_text(content, encoding="utf-8")
            created.append(path)

    logger.info("Initialised project at %s (%d new paths)", workspace.root, len(created))
    return created


__all__ = [
    "INSTALL_FILES_DEST",
    "SANDBOX_CACHE",
    "SANDBOX_WORKSPACE",
    "Workspace",
    "clean_cache",
    "init_project",
    "iso_name",
]
