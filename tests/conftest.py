"""Shared fixtures: in-memory fakes for the engine and repository."""

from collections.abc import Mapping, Sequence

import pytest

from imagepush.config import Settings
from imagepush.errors import EngineError
from imagepush.types import ResolvedLayer

REPO = "docker-local"
IMAGE = "registry.example.com/app:1.0"
TAG_FOLDER = "app/1.0"
CONFIG_DIGEST = "sha256:cfg123"


class FakeRepository:
    """Repository stand-in recording every query."""

    def __init__(
        self,
        folders: Mapping[str, list[ResolvedLayer]] | None = None,
        lag: int = 0,
    ) -> None:
        self.folders = dict(folders or {})
        self.lag = lag
        self.calls: list[tuple[str, ...]] = []
        self.properties_set: list[tuple[str, dict[str, str]]] = []

    def find_by_property(
        self,
        repo: str,
        key: str,
        value: str,
        path_pattern: str | None = None,
    ) -> list[ResolvedLayer]:
        self.calls.append(("find_by_property", repo, key, value))
        return [
            layer
            for layers in self.folders.values()
            for layer in layers
            if layer.repo == repo and layer.properties.get(key) == value
        ]

    def list_folder(self, repo: str, path: str) -> list[ResolvedLayer]:
        self.calls.append(("list_folder", repo, path))
        if self.lag > 0:
            self.lag -= 1
            return []
        return [layer for layer in self.folders.get(path, []) if layer.repo == repo]

    def set_properties(
        self, layer: ResolvedLayer, properties: Mapping[str, str]
    ) -> None:
        self.properties_set.append((layer.full_path, dict(properties)))

    def count(self, method: str) -> int:
        """Number of calls made to a query method."""
        return sum(1 for call in self.calls if call[0] == method)


class FakeEngine:
    """Container engine stand-in."""

    def __init__(self, digest: str = CONFIG_DIGEST, fail_push: bool = False) -> None:
        self._digest = digest
        self.fail_push = fail_push
        self.pushed: list[tuple[str, tuple[str, ...]]] = []
        self.digest_calls: list[str] = []

    def push(self, image: str, extra_args: Sequence[str] | None = None) -> None:
        if self.fail_push:
            raise EngineError("push failed", exit_code=1)
        self.pushed.append((image, tuple(extra_args or ())))

    def digest(self, image: str) -> str:
        self.digest_calls.append(image)
        return self._digest


def make_layers() -> list[ResolvedLayer]:
    """Layers of app:1.0 as stored in the repository."""
    return [
        ResolvedLayer(REPO, TAG_FOLDER, "manifest.json", {"sha256": "man456"}),
        ResolvedLayer(REPO, TAG_FOLDER, "sha256__cfg123", {"sha256": "cfg123"}),
        ResolvedLayer(REPO, TAG_FOLDER, "sha256__aaa", {"sha256": "aaa"}),
        ResolvedLayer(REPO, TAG_FOLDER, "sha256__bbb", {}),
    ]


@pytest.fixture
def layers() -> list[ResolvedLayer]:
    """Layers of the test image."""
    return make_layers()


@pytest.fixture
def repository(layers) -> FakeRepository:
    """Repository holding the test image."""
    return FakeRepository({TAG_FOLDER: layers})


@pytest.fixture
def empty_repository() -> FakeRepository:
    """Repository holding nothing."""
    return FakeRepository()


@pytest.fixture
def engine() -> FakeEngine:
    """Engine whose pushes succeed."""
    return FakeEngine()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings writing manifests under tmp_path without tag lookup delays."""
    return Settings(
        repository_url="https://repo.example.com/artifactory",
        db_url="sqlite:///:memory:",
        tmp_dir=tmp_path / "manifests",
        tag_lookup_attempts=3,
        tag_lookup_interval=0,
    )
