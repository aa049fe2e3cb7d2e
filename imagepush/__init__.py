"""imagepush - Build-provenance correlation for container image pushes.

This package pushes an image through a container engine, finds the
repository artifacts that make up the pushed image, records them as
build-info and produces a transfer manifest for downstream tooling.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
