"""Build dependency trees from project manifests, lock files and build tools."""

__version__ = "1.5.20"