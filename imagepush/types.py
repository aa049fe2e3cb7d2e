"""Shared type definitions for imagepush.

This module contains dataclasses, enums and type aliases shared across
subpackages to avoid circular imports.
"""

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

SHA256_PROPERTY = "sha256"
MANIFEST_FILENAME = "manifest.json"
DEFAULT_TAG = "latest"


class EngineType(str, Enum):
    """Supported container engines."""

    DOCKER = "docker"
    PODMAN = "podman"


class ResolutionStrategy(str, Enum):
    """How pushed layers are correlated with repository artifacts."""

    DIGEST = "digest"
    TAG = "tag"


@dataclass(frozen=True)
class ImageReference:
    """A parsed container image reference (``host/name:tag``).

    Attributes:
        registry: Registry host, or None when the reference has none.
        name: Image name without the registry host.
        tag: Image tag (``latest`` when omitted).
        digest: Pinned digest (``sha256:...``) when the reference has one.
    """

    registry: str | None
    name: str
    tag: str = DEFAULT_TAG
    digest: str | None = None

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """Parse an image reference string.

        Raises:
            ValueError: If the reference is empty.
        """
        ref = reference.strip()
        if not ref:
            raise ValueError("image reference must not be empty")

        digest: str | None = None
        if "@" in ref:
            ref, digest = ref.split("@", 1)

        tag = DEFAULT_TAG
        last_slash = ref.rfind("/")
        last_colon = ref.rfind(":")
        if last_colon > last_slash:
            ref, tag = ref[:last_colon], ref[last_colon + 1 :]

        registry: str | None = None
        first, sep, rest = ref.partition("/")
        # First component is a host only if it looks like one
        if sep and ("." in first or ":" in first or first == "localhost"):
            registry, ref = first, rest

        return cls(registry=registry, name=ref, tag=tag, digest=digest)

    def name_in(self, repository: str) -> str:
        """Image name relative to a repository.

        Registries addressed with the repository key as the first path
        component (``host/<repo>/app``) store the image under ``app``.
        """
        prefix = f"{repository}/"
        if self.name.startswith(prefix):
            return self.name[len(prefix) :]
        return self.name

    def __str__(self) -> str:
        host = f"{self.registry}/" if self.registry else ""
        pinned = f"@{self.digest}" if self.digest else ""
        return f"{host}{self.name}:{self.tag}{pinned}"


@dataclass(frozen=True)
class BuildCoordinates:
    """Identifies the build a push is recorded against."""

    name: str | None = None
    number: str | None = None
    project: str | None = None
    module: str | None = None

    @property
    def is_complete(self) -> bool:
        """True when both build name and number are set."""
        return bool(self.name and self.number)


@dataclass(frozen=True)
class PushRequest:
    """Everything one push invocation needs. Immutable once constructed.

    Attributes:
        image: Image reference as given to the engine.
        repository: Target repository key.
        build: Build coordinates for build-info collection.
        engine_args: Extra arguments passed to the engine push command.
        collect_build_info: Record the pushed layers as a build-info module.
        detailed_summary: Produce a transfer manifest of the pushed layers.
        validate_by_digest: Correlate layers by content digest instead of tag.
    """

    image: str
    repository: str
    build: BuildCoordinates = field(default_factory=BuildCoordinates)
    engine_args: tuple[str, ...] = ()
    collect_build_info: bool = False
    detailed_summary: bool = False
    validate_by_digest: bool = False

    def __post_init__(self) -> None:
        """Validate the request."""
        if not self.image:
            raise ValueError("image must be provided")
        if not self.repository:
            raise ValueError("repository must be provided")
        if self.collect_build_info and not self.build.is_complete:
            raise ValueError(
                "build name and number are required to collect build-info"
            )
        # Accept any iterable of args but store a tuple
        object.__setattr__(self, "engine_args", tuple(self.engine_args))

    @property
    def image_ref(self) -> ImageReference:
        """Parsed image reference."""
        return ImageReference.parse(self.image)

    @property
    def strategy(self) -> ResolutionStrategy:
        """Resolution strategy chosen by the request flags."""
        if self.validate_by_digest:
            return ResolutionStrategy.DIGEST
        return ResolutionStrategy.TAG


@dataclass(frozen=True)
class ResolvedLayer:
    """A repository artifact that belongs to a pushed image.

    ``properties`` is copied into a read-only mapping on construction.
    """

    repo: str
    path: str
    name: str
    properties: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Freeze the properties mapping."""
        object.__setattr__(
            self, "properties", MappingProxyType(dict(self.properties))
        )

    @property
    def item_path(self) -> str:
        """Path of the layer inside its repository: ``path/name``.

        Items at the repository root are reported with path ``.``.
        """
        return posixpath.normpath(posixpath.join(self.path.lstrip("/"), self.name))

    @property
    def full_path(self) -> str:
        """Repository path of the layer: ``repo/path/name``."""
        return posixpath.join(self.repo, self.item_path)

    @property
    def sha256(self) -> str:
        """Content digest property, empty when absent."""
        return self.properties.get(SHA256_PROPERTY, "")


@dataclass
class ModuleArtifact:
    """One artifact entry of a build-info module."""

    name: str
    path: str
    sha256: str
    type: str | None = None


@dataclass
class BuildInfoModule:
    """A named collection of artifacts correlated with a build."""

    id: str
    type: str = "docker"
    artifacts: list[ModuleArtifact] = field(default_factory=list)


@dataclass(frozen=True)
class TransferDetail:
    """Location and digest of one pushed layer."""

    target_path: str
    repository_url: str
    sha256: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to a flat record for serialization."""
        return {
            "target_path": self.target_path,
            "repository_url": self.repository_url,
            "sha256": self.sha256,
        }


__all__ = [
    "DEFAULT_TAG",
    "MANIFEST_FILENAME",
    "SHA256_PROPERTY",
    "BuildCoordinates",
    "BuildInfoModule",
    "EngineType",
    "ImageReference",
    "ModuleArtifact",
    "PushRequest",
    "ResolutionStrategy",
    "ResolvedLayer",
    "TransferDetail",
]
