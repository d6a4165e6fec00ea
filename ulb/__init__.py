"""Universal Live Builder - build live ISO images inside a disposable sandbox.

This package drives a podman build container through an ordered pipeline of
stages (package installation, rootfs bootstrap, image mastering) for the
supported distributions.
"""

__version__ = "0.2.0"
__all__ = ["__version__"]
