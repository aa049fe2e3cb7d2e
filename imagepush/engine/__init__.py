"""Container engine integration.

This module handles pushing images, reading image digests, registry
login and API version checks through the docker or podman CLI.
"""

from imagepush.engine.runner import ContainerEngine

__all__ = ["ContainerEngine"]
