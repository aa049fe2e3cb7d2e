"""Build-info persistence.

This module provides the build-info store used by the push workflow:
- save_general_details(): record a build before modules are collected
- save_module(): record one module and its artifacts
- get_build() / list_builds(): read back collected build-info

Every write runs in its own transaction. Database failures are surfaced
as PersistenceError with the original exception chained.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from imagepush.buildinfo.models import (
    BuildModuleRecord,
    BuildRecord,
    ModuleArtifactRecord,
)
from imagepush.db import session_scope
from imagepush.errors import PersistenceError
from imagepush.types import BuildInfoModule

logger = logging.getLogger(__name__)


class BuildNotFoundError(Exception):
    """Raised when a build is not found."""

    def __init__(
        self,
        name: str,
        number: str,
        project: str | None = None,
        code: str = "build_not_found",
    ) -> None:
        label = f"{name}/{number}"
        if project:
            label = f"{label} (project {project})"
        super().__init__(f"Build not found: {label}")
        self.name = name
        self.number = number
        self.project = project
        self.code = code


def _find_build(
    session: Session,
    name: str,
    number: str,
    project: str | None,
) -> BuildRecord | None:
    stmt = (
        select(BuildRecord)
        .where(
            BuildRecord.name == name,
            BuildRecord.number == number,
            BuildRecord.project == (project or ""),
        )
        .options(
            selectinload(BuildRecord.modules).selectinload(BuildModuleRecord.artifacts)
        )
    )
    return session.execute(stmt).scalar_one_or_none()


def _get_or_create_build(
    session: Session,
    name: str,
    number: str,
    project: str | None,
) -> BuildRecord:
    build = _find_build(session, name, number, project)
    if build is None:
        build = BuildRecord(name=name, number=number, project=project or "")
        session.add(build)
        session.flush()
        logger.info("Created build record %s/%s", name, number)
    return build


class BuildInfoStore:
    """Persists build-info for pushed images."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def save_general_details(
        self,
        name: str,
        number: str,
        project: str | None = None,
    ) -> None:
        """Record that a build exists.

        Raises:
            PersistenceError: If the database write fails.
        """
        try:
            with session_scope(self._session_factory) as session:
                build = _get_or_create_build(session, name, number, project)
                build.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"failed to save build general details: {e}"
            ) from e

    def save_module(
        self,
        name: str,
        number: str,
        project: str | None,
        module: BuildInfoModule,
    ) -> None:
        """Record a module and its artifacts.

        A module saved again under the same id replaces the earlier one.

        Raises:
            PersistenceError: If the database write fails.
        """
        try:
            with session_scope(self._session_factory) as session:
                build = _get_or_create_build(session, name, number, project)

                for existing in list(build.modules):
                    if existing.module_id == module.id:
                        logger.debug("Replacing module %s", module.id)
                        build.modules.remove(existing)

                record = BuildModuleRecord(module_id=module.id, type=module.type)
                record.artifacts = [
                    ModuleArtifactRecord(
                        position=i,
                        name=artifact.name,
                        path=artifact.path,
                        sha256=artifact.sha256,
                        type=artifact.type,
                    )
                    for i, artifact in enumerate(module.artifacts)
                ]
                build.modules.append(record)
                build.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to save build info: {e}") from e

        logger.info(
            "Saved module %s with %d artifacts to build %s/%s",
            module.id,
            len(module.artifacts),
            name,
            number,
        )

    def get_build(
        self,
        name: str,
        number: str,
        project: str | None = None,
    ) -> BuildRecord:
        """Get a build with its modules and artifacts loaded.

        Raises:
            BuildNotFoundError: If the build does not exist.
        """
        with session_scope(self._session_factory) as session:
            build = _find_build(session, name, number, project)
        if build is None:
            raise BuildNotFoundError(name, number, project)
        return build

    def list_builds(
        self,
        name: str | None = None,
        limit: int = 100,
    ) -> list[BuildRecord]:
        """List builds, newest first.

        Args:
            name: Filter by build name.
            limit: Maximum results to return.
        """
        stmt = select(BuildRecord).options(selectinload(BuildRecord.modules))
        if name is not None:
            stmt = stmt.where(BuildRecord.name == name)
        stmt = stmt.order_by(BuildRecord.id.desc()).limit(limit)

        with session_scope(self._session_factory) as session:
            return list(session.execute(stmt).scalars().all())


__all__ = ["BuildInfoStore", "BuildNotFoundError"]
