"""Per-distro command table entry.

Each supported distro contributes one DistroCommands value holding its
defaults and command template functions. The generic provider looks the
entry up by Distro and never branches on the distro itself.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from ulb.types import Distro

if TYPE_CHECKING:
    from ulb.config import Settings
    from ulb.manifest import BuildConfig


@dataclass(frozen=True)
class CommandContext:
    """Inputs available to command templates.

    Attributes:
        config: Build manifest.
        settings: Application settings.
        arch: Effective target architecture.
        rootfs: Root filesystem tree inside the sandbox.
        release_dir: ISO output directory inside the sandbox.
    """

    config: BuildConfig
    settings: Settings
    arch: str
    rootfs: PurePosixPath
    release_dir: PurePosixPath


@dataclass(frozen=True)
class DistroCommands:
    """Distro defaults plus one command template per capability.

    Templates return the ordered shell commands for their stage.
    """

    distro: Distro
    default_arch: str
    repo_config_dir: PurePosixPath
    image: Callable[[Settings], str]
    install: Callable[[list[str]], list[str]]
    remove: Callable[[list[str]], list[str]]
    build_rootfs: Callable[[CommandContext], list[str]]
    refresh: Callable[[], list[str]]
    create_iso: Callable[[CommandContext, str, bool], list[str]]


def join_args(values: Iterable[str]) -> str:
    """Shell-quote values and join them with spaces."""
    return " ".join(shlex.quote(v) for v in values)


__all__ = ["CommandContext", "DistroCommands", "join_args"]
