"""Push service module.

This module provides the high-level push API:
- PushOrchestrator.run(): push an image, then collect build-info and/or
  a transfer summary for the pushed layers
- run_push(): wire the orchestrator to the configured engine, repository
  and build-info database

After the push, two independent gates may fire: build-info collection and
the detailed summary. The resolution strategy (digest or tag) is chosen
once per push, and when both gates fire the layers are resolved once and
shared between them.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Protocol

from imagepush.buildinfo.assembler import BuildInfoAssembler
from imagepush.config import get_settings
from imagepush.errors import ModuleNilError, PersistenceError
from imagepush.push.manifest import PushResult, build_transfer_manifest
from imagepush.push.resolvers import (
    DigestResolver,
    LayerRepository,
    LayerResolver,
    TagResolver,
)
from imagepush.types import (
    BuildCoordinates,
    BuildInfoModule,
    EngineType,
    PushRequest,
    ResolutionStrategy,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from imagepush.config import Settings

logger = logging.getLogger(__name__)


class Engine(Protocol):
    """Container engine operations used by the push workflow."""

    def push(self, image: str, extra_args: Sequence[str] | None = None) -> None: ...

    def digest(self, image: str) -> str: ...


class BuildInfoWriter(Protocol):
    """Build-info persistence used by the push workflow."""

    def save_general_details(
        self, name: str, number: str, project: str | None = None
    ) -> None: ...

    def save_module(
        self,
        name: str,
        number: str,
        project: str | None,
        module: BuildInfoModule,
    ) -> None: ...


AssemblerFactory = Callable[[LayerResolver, BuildCoordinates], BuildInfoAssembler]


class PushOrchestrator:
    """Drives one push and the build-info/summary work that follows it.

    Instances hold no per-push state, so one orchestrator may serve many
    pushes; each run() creates its own resolver and assembler.

    Args:
        engine: Container engine.
        repository: Repository query interface.
        store: Build-info persistence (required to collect build-info).
        settings: Application settings.
        assembler_factory: Creates the assembler wrapping the chosen resolver.
        sleep: Sleep function used between tag lookups.
    """

    def __init__(
        self,
        engine: Engine,
        repository: LayerRepository,
        store: BuildInfoWriter | None = None,
        settings: Settings | None = None,
        assembler_factory: AssemblerFactory = BuildInfoAssembler,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.engine = engine
        self.repository = repository
        self.store = store
        self.settings = settings or get_settings()
        self.assembler_factory = assembler_factory
        self._sleep = sleep

    def run(self, request: PushRequest) -> PushResult:
        """Push an image and process the enabled gates.

        Args:
            request: Push request.

        Returns:
            PushResult; empty unless a detailed summary was requested.

        Raises:
            EngineError: If the push or digest lookup fails.
            ResolutionError: If no repository artifacts match the image.
            ModuleNilError: If module assembly returned nothing.
            PersistenceError: If build-info could not be saved.
            SerializationError: If the transfer manifest could not be written.
        """
        self.engine.push(request.image, request.engine_args)
        logger.info("Pushed %s to %s", request.image, request.repository)

        to_collect = request.collect_build_info
        detailed_summary = request.detailed_summary
        if not to_collect and not detailed_summary:
            return PushResult()

        resolver = self._select_resolver(request)
        assembler = self.assembler_factory(resolver, request.build)

        if to_collect:
            self._collect_build_info(request, assembler)

        if detailed_summary:
            return self._build_summary(assembler)

        return PushResult()

    def _select_resolver(self, request: PushRequest) -> LayerResolver:
        """Create the resolver for this push."""
        image = request.image_ref
        if request.strategy is ResolutionStrategy.DIGEST:
            logger.info("Performing SHA-based validation for %s", image)
            digest = self.engine.digest(request.image)
            logger.debug("Using image digest %s for validation", digest)
            return DigestResolver(image, request.repository, self.repository, digest)

        return TagResolver(
            image,
            request.repository,
            self.repository,
            attempts=self.settings.tag_lookup_attempts,
            interval=self.settings.tag_lookup_interval,
            sleep=self._sleep,
        )

    def _collect_build_info(
        self, request: PushRequest, assembler: BuildInfoAssembler
    ) -> None:
        """Save general details, then the module for the pushed image."""
        if self.store is None:
            raise PersistenceError("no build-info store configured")

        build = request.build
        name, number = build.name or "", build.number or ""

        self.store.save_general_details(name, number, build.project)
        module = assembler.build(build.module or "")
        if module is None:
            raise ModuleNilError()
        self.store.save_module(name, number, build.project, module)

    def _build_summary(self, assembler: BuildInfoAssembler) -> PushResult:
        """Write the transfer manifest, resolving layers only if needed."""
        if not assembler.resolved:
            # Summary-only resolution writes no build properties
            assembler.resolver.prepare_for_summary()
            assembler.build("")

        return build_transfer_manifest(
            assembler.layers,
            self.settings.repository_url,
            tmp_dir=self.settings.tmp_dir,
        )


def run_push(
    request: PushRequest,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
    login: bool = True,
) -> PushResult:
    """Push an image using the configured engine, repository and database.

    Before the push, the docker client API version is checked and, when
    credentials are configured and the image names a registry host, the
    engine logs in to that registry.

    Args:
        request: Push request.
        settings: Application settings.
        session_factory: Build-info database session factory. Created from
            settings when build-info is collected and none is given.
        login: Log in to the registry before pushing.

    Returns:
        PushResult of the orchestrator.
    """
    from imagepush.buildinfo.store import BuildInfoStore
    from imagepush.engine.runner import ContainerEngine
    from imagepush.repository.client import RepositoryClient

    if settings is None:
        settings = get_settings()

    engine = ContainerEngine(
        EngineType(settings.engine), timeout=settings.engine_timeout
    )
    engine.validate_api_version()

    registry = request.image_ref.registry
    if login and registry and settings.repository_user and settings.repository_token:
        engine.login(registry, settings.repository_user, settings.repository_token)

    store: BuildInfoStore | None = None
    if request.collect_build_info:
        if session_factory is None:
            from imagepush.db import open_session_factory

            session_factory = open_session_factory(settings.db_url)
        store = BuildInfoStore(session_factory)

    with RepositoryClient(
        settings.repository_url,
        user=settings.repository_user,
        token=settings.repository_token,
        timeout=settings.request_timeout,
        threads=settings.threads,
    ) as client:
        orchestrator = PushOrchestrator(engine, client, store=store, settings=settings)
        return orchestrator.run(request)


__all__ = [
    "AssemblerFactory",
    "BuildInfoWriter",
    "Engine",
    "PushOrchestrator",
    "run_push",
]
