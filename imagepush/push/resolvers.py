"""Layer resolvers.

A layer resolver finds the repository artifacts that make up a pushed
image. Two strategies share one contract:

- DigestResolver: matches the image content digest. A digest identifies
  content uniquely, so one lookup pass is correct and no polling is done.
- TagResolver: reads the image's tag folder. The repository may index a
  push slightly after the engine reports success, so the lookup is retried
  for a bounded number of attempts. Resolved layers are tagged with build
  properties unless tagging is skipped.

The push workflow picks one resolver per invocation and never mixes them.
"""

from __future__ import annotations

import logging
import posixpath
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Protocol

from imagepush.errors import ResolutionError
from imagepush.types import (
    MANIFEST_FILENAME,
    SHA256_PROPERTY,
    BuildCoordinates,
    ImageReference,
    ResolutionStrategy,
    ResolvedLayer,
)

logger = logging.getLogger(__name__)

BUILD_NAME_PROPERTY = "build.name"
BUILD_NUMBER_PROPERTY = "build.number"
BUILD_TIMESTAMP_PROPERTY = "build.timestamp"
BUILD_PROJECT_PROPERTY = "build.project"


class LayerRepository(Protocol):
    """Repository queries used by the resolvers."""

    def find_by_property(
        self,
        repo: str,
        key: str,
        value: str,
        path_pattern: str | None = None,
    ) -> list[ResolvedLayer]: ...

    def list_folder(self, repo: str, path: str) -> list[ResolvedLayer]: ...

    def set_properties(
        self, layer: ResolvedLayer, properties: Mapping[str, str]
    ) -> None: ...


class LayerResolver(ABC):
    """Base class for layer resolution strategies.

    Args:
        image: Pushed image reference.
        repository_key: Repository the image was pushed to.
        repository: Repository query interface.
    """

    strategy: ResolutionStrategy

    def __init__(
        self,
        image: ImageReference,
        repository_key: str,
        repository: LayerRepository,
    ) -> None:
        self.image = image
        self.repository_key = repository_key
        self.repository = repository
        self._layers: list[ResolvedLayer] | None = None

    @property
    def image_name(self) -> str:
        """Image name inside the repository."""
        return self.image.name_in(self.repository_key)

    @property
    def resolved(self) -> bool:
        """Whether resolution has completed successfully."""
        return self._layers is not None

    @property
    def layers(self) -> list[ResolvedLayer]:
        """Layers found by the last resolution.

        Raises:
            RuntimeError: If called before resolution.
        """
        if self._layers is None:
            raise RuntimeError("layers are not available before resolution")
        return list(self._layers)

    def resolve_layers(
        self, build: BuildCoordinates | None = None
    ) -> list[ResolvedLayer]:
        """Find the layers of the pushed image.

        Args:
            build: Build the layers are collected for.

        Raises:
            ResolutionError: If no repository artifact matches.
        """
        layers = self._query()
        if not layers:
            raise ResolutionError(
                f"no artifacts found in {self.repository_key} for image "
                f"{self.image} ({self.strategy.value} resolution)"
            )
        self._layers = layers
        logger.info(
            "Resolved %d layers for %s by %s",
            len(layers),
            self.image,
            self.strategy.value,
        )
        self._after_resolve(layers, build)
        return list(layers)

    def prepare_for_summary(self) -> None:
        """Adjust for a resolution run only to build a transfer summary."""

    def _after_resolve(
        self, layers: list[ResolvedLayer], build: BuildCoordinates | None
    ) -> None:
        """Hook run after layers were found."""

    @abstractmethod
    def _query(self) -> list[ResolvedLayer]:
        """Query the repository for the image layers."""


class DigestResolver(LayerResolver):
    """Resolves layers by the image content digest.

    The item carrying the digest as its ``sha256`` property (the image
    config blob) locates the image folder; the folder's files are the
    layers. When the same content was pushed under several tags, the
    folder of the pushed tag is preferred.
    """

    strategy = ResolutionStrategy.DIGEST

    def __init__(
        self,
        image: ImageReference,
        repository_key: str,
        repository: LayerRepository,
        digest: str,
    ) -> None:
        super().__init__(image, repository_key, repository)
        if not digest:
            raise ValueError("digest must be provided")
        self.digest = digest

    @property
    def digest_hex(self) -> str:
        """Digest without its algorithm prefix."""
        return self.digest.split(":", 1)[-1]

    def _query(self) -> list[ResolvedLayer]:
        matches = self.repository.find_by_property(
            self.repository_key,
            SHA256_PROPERTY,
            self.digest_hex,
            path_pattern=f"{self.image_name}/*",
        )
        if not matches:
            logger.warning(
                "No item with digest %s in %s", self.digest, self.repository_key
            )
            return []

        tag_folder = posixpath.join(self.image_name, self.image.tag)
        folder = next(
            (m.path for m in matches if m.path == tag_folder), matches[0].path
        )
        logger.debug("Digest %s located in folder %s", self.digest, folder)
        return self.repository.list_folder(self.repository_key, folder)


class TagResolver(LayerResolver):
    """Resolves layers from the image tag folder.

    Args:
        image: Pushed image reference.
        repository_key: Repository the image was pushed to.
        repository: Repository query interface.
        attempts: Lookups before giving up.
        interval: Seconds to wait between lookups.
        sleep: Sleep function (replaced in tests).
    """

    strategy = ResolutionStrategy.TAG

    def __init__(
        self,
        image: ImageReference,
        repository_key: str,
        repository: LayerRepository,
        attempts: int = 5,
        interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(image, repository_key, repository)
        self.attempts = max(1, attempts)
        self.interval = interval
        self.skip_tagging = False
        self._sleep = sleep

    @property
    def tag_folder(self) -> str:
        """Repository folder holding the tag's manifest and layers."""
        return posixpath.join(self.image_name, self.image.tag)

    def prepare_for_summary(self) -> None:
        """Do not re-tag layers when resolving only for a summary."""
        self.skip_tagging = True

    def _query(self) -> list[ResolvedLayer]:
        for attempt in range(1, self.attempts + 1):
            items = self.repository.list_folder(self.repository_key, self.tag_folder)
            if any(item.name == MANIFEST_FILENAME for item in items):
                return items
            if attempt < self.attempts:
                logger.info(
                    "Manifest for %s not indexed yet (attempt %d/%d), retry in %.1fs",
                    self.image,
                    attempt,
                    self.attempts,
                    self.interval,
                )
                self._sleep(self.interval)
        return []

    def _after_resolve(
        self, layers: list[ResolvedLayer], build: BuildCoordinates | None
    ) -> None:
        if self.skip_tagging:
            logger.debug("Skipping build properties on %s", self.tag_folder)
            return
        if build is None or not build.is_complete:
            return

        properties = {
            BUILD_NAME_PROPERTY: build.name or "",
            BUILD_NUMBER_PROPERTY: build.number or "",
            BUILD_TIMESTAMP_PROPERTY: str(int(time.time() * 1000)),
        }
        if build.project:
            properties[BUILD_PROJECT_PROPERTY] = build.project

        for layer in layers:
            self.repository.set_properties(layer, properties)
        logger.info(
            "Tagged %d layers with build %s/%s", len(layers), build.name, build.number
        )


__all__ = [
    "BUILD_NAME_PROPERTY",
    "BUILD_NUMBER_PROPERTY",
    "BUILD_PROJECT_PROPERTY",
    "BUILD_TIMESTAMP_PROPERTY",
    "DigestResolver",
    "LayerRepository",
    "LayerResolver",
    "TagResolver",
]
