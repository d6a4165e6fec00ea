"""Fedora command templates (dnf, lorax)."""

from __future__ import annotations

import shlex
from pathlib import PurePosixPath

from ulb.distros.base import CommandContext, DistroCommands, join_args
from ulb.types import Distro

DNF_CACHE = PurePosixPath("/cache/dnf")
LORAX_OUTPUT = PurePosixPath("/tmp/lorax-output")

# Expands inside the sandbox to its own Fedora release number
SANDBOX_RELEASEVER = "$(rpm -E %fedora)"

SOURCE_URL = (
    "https://download.fedoraproject.org/pub/fedora/linux/releases/"
    "{release}/Everything/{arch}/os/"
)


def _releasever(ctx: CommandContext) -> str:
    if ctx.settings.fedora_release:
        return shlex.quote(ctx.settings.fedora_release)
    return SANDBOX_RELEASEVER


def install(packages: list[str]) -> list[str]:
    return [
        f"dnf makecache --cachedir={DNF_CACHE}",
        f"dnf --cachedir={DNF_CACHE} install -y {join_args(packages)}",
    ]


def remove(packages: list[str]) -> list[str]:
    return [f"dnf remove -y {join_args(packages)}"]


def build_rootfs(ctx: CommandContext) -> list[str]:
    rootfs = shlex.quote(str(ctx.rootfs))
    return [
        f"dnf --cachedir={DNF_CACHE} install --installroot {rootfs} "
        f"--releasever={_releasever(ctx)} -y @core"
    ]


def refresh() -> list[str]:
    return [f"dnf --cachedir={DNF_CACHE} makecache --refresh"]


def create_iso(ctx: CommandContext, iso_name: str, release: bool) -> list[str]:
    """Master the ISO with lorax and move boot.iso into the release dir.

    Lorax insists on a fresh output directory and always names its image
    images/boot.iso, so both steps share one shell command.
    """
    releasever = _releasever(ctx)
    source = SOURCE_URL.format(release=releasever, arch=ctx.arch)
    lorax = [
        "lorax",
        f"-p {shlex.quote(ctx.config.image_name)}",
        f"-v {releasever}",
        f"-r {releasever}",
        f"--buildarch={shlex.quote(ctx.arch)}",
        f"-s {source}",
        "--rootfs-size=3",
    ]
    if release:
        lorax.append("--isfinal")
    lorax.append(str(LORAX_OUTPUT))
    target = shlex.quote(str(ctx.release_dir / iso_name))
    return [
        f"rm -rf {LORAX_OUTPUT} && {' '.join(lorax)} && "
        f"mv {LORAX_OUTPUT}/images/boot.iso {target}"
    ]


COMMANDS = DistroCommands(
    distro=Distro.FEDORA,
    default_arch="x86_64",
    repo_config_dir=PurePosixPath("/etc/yum.repos.d"),
    image=lambda settings: settings.fedora_image,
    install=install,
    remove=remove,
    build_rootfs=build_rootfs,
    refresh=refresh,
    create_iso=create_iso,
)

__all__ = ["COMMANDS"]
