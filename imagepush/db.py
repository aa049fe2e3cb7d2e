"""Build-info database setup.

The build-info store works against a session factory; this module builds
one from a database URL and provides the transaction scope the store runs
its reads and writes in.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

SQLITE_PREFIX = "sqlite:///"
SQLITE_MEMORY = ":memory:"


class Base(DeclarativeBase):
    """Declarative base of the build-info models."""


def get_engine(db_url: str) -> Engine:
    """Create an engine for the build-info database.

    For a SQLite file database the parent directory is created, so the
    default location under the user's data directory works on first use.
    """
    connect_args: dict[str, object] = {}
    if db_url.startswith(SQLITE_PREFIX):
        connect_args["check_same_thread"] = False
        db_path = db_url.removeprefix(SQLITE_PREFIX)
        if db_path and db_path != SQLITE_MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(db_url, connect_args=connect_args)


def create_all_tables(engine: Engine) -> None:
    """Create the build-info tables that do not exist yet."""
    # Registers the models on Base.metadata
    from imagepush.buildinfo import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory whose objects stay readable after commit.

    The store hands build records back to callers after the session has
    closed, so instances are not expired on commit.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def open_session_factory(db_url: str) -> sessionmaker[Session]:
    """Prepare the database at ``db_url`` and return a session factory."""
    engine = get_engine(db_url)
    create_all_tables(engine)
    return get_session_factory(engine)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Run a block in one transaction: commit on success, roll back on error."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "create_all_tables",
    "get_engine",
    "get_session_factory",
    "open_session_factory",
    "session_scope",
]
