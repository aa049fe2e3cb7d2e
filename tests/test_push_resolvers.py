"""Tests for push/resolvers.py module."""

import pytest
from conftest import CONFIG_DIGEST, IMAGE, REPO, TAG_FOLDER, FakeRepository

from imagepush.errors import ResolutionError
from imagepush.push.resolvers import (
    BUILD_NAME_PROPERTY,
    BUILD_NUMBER_PROPERTY,
    BUILD_PROJECT_PROPERTY,
    BUILD_TIMESTAMP_PROPERTY,
    DigestResolver,
    TagResolver,
)
from imagepush.types import BuildCoordinates, ImageReference, ResolvedLayer

BUILD = BuildCoordinates(name="app-build", number="42")


@pytest.fixture
def image() -> ImageReference:
    """The pushed image."""
    return ImageReference.parse(IMAGE)


class TestDigestResolver:
    """Tests for DigestResolver."""

    def test_resolves_folder_of_digest(self, image, repository, layers):
        """Should return all files of the folder holding the digest."""
        resolver = DigestResolver(image, REPO, repository, CONFIG_DIGEST)

        result = resolver.resolve_layers(BUILD)

        assert result == layers
        assert resolver.layers == layers
        assert repository.count("find_by_property") == 1
        assert repository.calls[0] == ("find_by_property", REPO, "sha256", "cfg123")

    def test_never_tags_or_polls(self, image, repository):
        """Should issue a single lookup pass and write no properties."""
        resolver = DigestResolver(image, REPO, repository, CONFIG_DIGEST)

        resolver.resolve_layers(BUILD)

        assert repository.count("list_folder") == 1
        assert repository.properties_set == []

    def test_prefers_pushed_tag_folder(self, image, layers):
        """Should pick the pushed tag when the digest is in several folders."""
        other = [
            ResolvedLayer(REPO, "app/0.9", "manifest.json", {"sha256": "old"}),
            ResolvedLayer(REPO, "app/0.9", "sha256__cfg123", {"sha256": "cfg123"}),
        ]
        repository = FakeRepository({"app/0.9": other, TAG_FOLDER: layers})
        resolver = DigestResolver(image, REPO, repository, CONFIG_DIGEST)

        assert resolver.resolve_layers() == layers

    def test_deterministic_and_idempotent(self, image, repository):
        """Should return the same layers on repeated resolution."""
        resolver = DigestResolver(image, REPO, repository, CONFIG_DIGEST)

        first = resolver.resolve_layers()
        second = resolver.resolve_layers()

        assert first == second

    def test_prepare_for_summary_changes_nothing(self, image, repository, layers):
        """Should behave identically after prepare_for_summary."""
        resolver = DigestResolver(image, REPO, repository, CONFIG_DIGEST)
        resolver.prepare_for_summary()

        assert resolver.resolve_layers(BUILD) == layers
        assert not hasattr(resolver, "skip_tagging")

    def test_no_match_raises(self, image, empty_repository):
        """Should raise ResolutionError when no item carries the digest."""
        resolver = DigestResolver(image, REPO, empty_repository, CONFIG_DIGEST)

        with pytest.raises(ResolutionError):
            resolver.resolve_layers()
        assert resolver.resolved is False

    def test_requires_digest(self, image, repository):
        """Should reject an empty digest."""
        with pytest.raises(ValueError):
            DigestResolver(image, REPO, repository, "")

    def test_layers_before_resolution_raises(self, image, repository):
        """Should refuse to return layers before resolving."""
        resolver = DigestResolver(image, REPO, repository, CONFIG_DIGEST)
        with pytest.raises(RuntimeError):
            _ = resolver.layers


class TestTagResolver:
    """Tests for TagResolver."""

    def test_resolves_tag_folder(self, image, repository, layers):
        """Should list the tag folder."""
        resolver = TagResolver(image, REPO, repository, sleep=lambda _: None)

        assert resolver.resolve_layers() == layers
        assert repository.calls == [("list_folder", REPO, TAG_FOLDER)]

    def test_tags_layers_with_build_properties(self, image, repository, layers):
        """Should write build properties onto every layer."""
        resolver = TagResolver(image, REPO, repository, sleep=lambda _: None)

        resolver.resolve_layers(
            BuildCoordinates(name="app-build", number="42", project="proj")
        )

        assert len(repository.properties_set) == len(layers)
        path, props = repository.properties_set[0]
        assert path == layers[0].full_path
        assert props[BUILD_NAME_PROPERTY] == "app-build"
        assert props[BUILD_NUMBER_PROPERTY] == "42"
        assert props[BUILD_PROJECT_PROPERTY] == "proj"
        assert props[BUILD_TIMESTAMP_PROPERTY].isdigit()

    def test_no_tagging_without_build(self, image, repository):
        """Should not tag when no complete build is given."""
        resolver = TagResolver(image, REPO, repository, sleep=lambda _: None)

        resolver.resolve_layers(BuildCoordinates())

        assert repository.properties_set == []

    def test_skip_tagging_for_summary(self, image, repository):
        """Should not tag after prepare_for_summary."""
        resolver = TagResolver(image, REPO, repository, sleep=lambda _: None)
        resolver.prepare_for_summary()

        resolver.resolve_layers(BUILD)

        assert resolver.skip_tagging is True
        assert repository.properties_set == []

    def test_tolerates_indexing_lag(self, image, layers):
        """Should retry until the manifest is indexed."""
        repository = FakeRepository({TAG_FOLDER: layers}, lag=2)
        sleeps: list[float] = []
        resolver = TagResolver(
            image, REPO, repository, attempts=5, interval=1.5, sleep=sleeps.append
        )

        assert resolver.resolve_layers() == layers
        assert repository.count("list_folder") == 3
        assert sleeps == [1.5, 1.5]

    def test_folder_without_manifest_is_retried(self, image):
        """Should not accept a folder whose manifest is not indexed yet."""
        partial = [ResolvedLayer(REPO, TAG_FOLDER, "sha256__aaa", {"sha256": "aaa"})]
        repository = FakeRepository({TAG_FOLDER: partial})
        resolver = TagResolver(
            image, REPO, repository, attempts=2, sleep=lambda _: None
        )

        with pytest.raises(ResolutionError):
            resolver.resolve_layers()
        assert repository.count("list_folder") == 2

    def test_gives_up_after_attempts(self, image, empty_repository):
        """Should raise ResolutionError after the last attempt."""
        sleeps: list[float] = []
        resolver = TagResolver(
            image, REPO, empty_repository, attempts=3, interval=0, sleep=sleeps.append
        )

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve_layers()

        assert exc_info.value.code == "resolution_failed"
        assert empty_repository.count("list_folder") == 3
        assert len(sleeps) == 2

    def test_strips_repository_key_from_image_name(self, layers):
        """Should resolve images addressed as host/<repo>/name."""
        image = ImageReference.parse(f"host.io/{REPO}/app:1.0")
        repository = FakeRepository({TAG_FOLDER: layers})
        resolver = TagResolver(image, REPO, repository, sleep=lambda _: None)

        assert resolver.tag_folder == TAG_FOLDER
        assert resolver.resolve_layers() == layers
