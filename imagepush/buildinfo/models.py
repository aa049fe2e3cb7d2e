"""Build-info ORM models.

This module defines the BuildRecord, BuildModuleRecord and
ModuleArtifactRecord models storing collected build-info.
"""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imagepush.db import Base


class BuildRecord(Base):
    """ORM model for a build's general details.

    A BuildRecord is identified by build name, number and project. It is
    created before any module is recorded so that partial builds are still
    visible.

    Attributes:
        id: Primary key.
        name: Build name.
        number: Build number.
        project: Project key ("" when the build has no project).
        started_at: Timestamp when general details were first saved.
        updated_at: Timestamp of the last change.
    """

    __tablename__ = "build_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    number: Mapped[str] = mapped_column(String(100), nullable=False)
    project: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    started_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    modules: Mapped[list["BuildModuleRecord"]] = relationship(
        "BuildModuleRecord",
        back_populates="build",
        cascade="all, delete-orphan",
        order_by="BuildModuleRecord.id",
    )

    __table_args__ = (
        UniqueConstraint("name", "number", "project", name="uq_build_coordinates"),
    )

    def __repr__(self) -> str:
        """Return string representation of BuildRecord."""
        return (
            f"<BuildRecord(id={self.id}, name='{self.name}', "
            f"number='{self.number}', project='{self.project}')>"
        )


class BuildModuleRecord(Base):
    """ORM model for one build-info module.

    Attributes:
        id: Primary key.
        build_id: Foreign key to BuildRecord.
        module_id: Module identifier (usually ``image:tag``).
        type: Module type (``docker``).
        created_at: Timestamp when the module was saved.
    """

    __tablename__ = "build_modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    build_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("build_records.id"), nullable=False, index=True
    )
    module_id: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="docker")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    build: Mapped["BuildRecord"] = relationship(
        "BuildRecord", back_populates="modules"
    )
    artifacts: Mapped[list["ModuleArtifactRecord"]] = relationship(
        "ModuleArtifactRecord",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="ModuleArtifactRecord.position",
    )

    def __repr__(self) -> str:
        """Return string representation of BuildModuleRecord."""
        return (
            f"<BuildModuleRecord(id={self.id}, module_id='{self.module_id}', "
            f"artifacts={len(self.artifacts)})>"
        )


class ModuleArtifactRecord(Base):
    """ORM model for an artifact referenced by a module.

    Attributes:
        id: Primary key.
        module_pk: Foreign key to BuildModuleRecord.
        position: Order of the artifact within the module.
        name: Artifact file name.
        path: Repository path of the artifact.
        sha256: Content digest ("" when unknown).
        type: Artifact type, if known.
    """

    __tablename__ = "module_artifacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_pk: Mapped[int] = mapped_column(
        Integer, ForeignKey("build_modules.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(1000), nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    module: Mapped["BuildModuleRecord"] = relationship(
        "BuildModuleRecord", back_populates="artifacts"
    )


__all__ = ["BuildModuleRecord", "BuildRecord", "ModuleArtifactRecord"]
