"""Build-info module assembly.

The assembler wraps one layer resolver and turns the layers it finds into
a BuildInfoModule. It remembers whether resolution already ran so the
push workflow can reuse the layers instead of querying the repository a
second time.
"""

from __future__ import annotations

import logging
import posixpath

from imagepush.push.resolvers import LayerResolver
from imagepush.types import (
    BuildCoordinates,
    BuildInfoModule,
    ModuleArtifact,
    ResolvedLayer,
)

logger = logging.getLogger(__name__)

MODULE_TYPE = "docker"


def default_module_id(resolver: LayerResolver) -> str:
    """Module id used when none is given: ``<image name>:<tag>``."""
    return f"{resolver.image_name}:{resolver.image.tag}"


def layer_to_artifact(layer: ResolvedLayer) -> ModuleArtifact:
    """Copy a resolved layer into a module artifact entry."""
    _, ext = posixpath.splitext(layer.name)
    return ModuleArtifact(
        name=layer.name,
        path=layer.item_path,
        sha256=layer.sha256,
        type=ext.lstrip(".") or None,
    )


class BuildInfoAssembler:
    """Builds build-info modules from a layer resolver.

    Args:
        resolver: The resolver chosen for this push.
        build: Build the module belongs to.
    """

    def __init__(self, resolver: LayerResolver, build: BuildCoordinates) -> None:
        self.resolver = resolver
        self.build_coordinates = build

    @property
    def resolved(self) -> bool:
        """Whether layers were already resolved."""
        return self.resolver.resolved

    @property
    def layers(self) -> list[ResolvedLayer]:
        """Layers from the last resolution."""
        return self.resolver.layers

    def build(self, module_name: str = "") -> BuildInfoModule | None:
        """Resolve layers and build a module.

        Args:
            module_name: Module id; defaults to the image name and tag.

        Raises:
            ResolutionError: If no layers were found.
        """
        layers = self.resolver.resolve_layers(self.build_coordinates)
        module = BuildInfoModule(
            id=module_name or default_module_id(self.resolver),
            type=MODULE_TYPE,
            artifacts=[layer_to_artifact(layer) for layer in layers],
        )
        logger.debug(
            "Assembled module %s with %d artifacts", module.id, len(module.artifacts)
        )
        return module


__all__ = [
    "MODULE_TYPE",
    "BuildInfoAssembler",
    "default_module_id",
    "layer_to_artifact",
]
