"""Distro providers.

Fedora and Debian each contribute a command table (ulb.distros.fedora,
ulb.distros.debian); DistroProvider runs the stages on top of it.
"""

from ulb.distros.provider import DISTRO_COMMANDS, DistroProvider, resolve_distro

__all__ = ["DISTRO_COMMANDS", "DistroProvider", "resolve_distro"]
