"""Build sandbox control.

This module handles:
- Provisioning and tearing down the podman build container
- Running commands and copying files into an active container

Submodules are imported directly (ulb.sandbox.controller, ulb.sandbox.executor).
"""

from ulb.sandbox.podman import SandboxHandle

__all__ = ["SandboxHandle"]
