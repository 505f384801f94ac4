"""Policy checks for container images: labels, layers, user, licenses, packages, modified files, base image and tags."""

__version__ = "0.1.0"
__all__ = ["__version__"]