"""Debian command templates (apt-get, debootstrap, xorriso)."""

from __future__ import annotations

import shlex
from pathlib import PurePosixPath

from ulb.distros.base import CommandContext, DistroCommands, join_args
from ulb.types import Distro

APT_ENV = "DEBIAN_FRONTEND=noninteractive"


def install(packages: list[str]) -> list[str]:
    return [
        "apt-get update",
        f"{APT_ENV} apt-get install -y {join_args(packages)}",
    ]


def remove(packages: list[str]) -> list[str]:
    return [f"{APT_ENV} apt-get remove -y {join_args(packages)}"]


def build_rootfs(ctx: CommandContext) -> list[str]:
    settings = ctx.settings
    return [
        f"debootstrap --arch={shlex.quote(ctx.arch)} "
        f"{shlex.quote(settings.debian_suite)} {shlex.quote(str(ctx.rootfs))} "
        f"{shlex.quote(settings.debian_mirror)}"
    ]


def refresh() -> list[str]:
    return ["apt-get update"]


def create_iso(ctx: CommandContext, iso_name: str, release: bool) -> list[str]:
    iso = ctx.release_dir / iso_name
    return [f"xorriso -as mkisofs -o {join_args([str(iso), str(ctx.rootfs)])}"]


COMMANDS = DistroCommands(
    distro=Distro.DEBIAN,
    default_arch="amd64",
    repo_config_dir=PurePosixPath("/etc/apt/sources.list.d"),
    image=lambda settings: settings.debian_image,
    install=install,
    remove=remove,
    build_rootfs=build_rootfs,
    refresh=refresh,
    create_iso=create_iso,
)

__all__ = ["COMMANDS"]
