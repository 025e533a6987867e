"""release-wheeler.

A small release utility that repackages the pre-built binaries of an upstream
GitHub release into platform-specific Python wheels, and optionally uploads
them to a package index.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
