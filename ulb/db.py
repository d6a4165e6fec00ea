"""Build history database.

History lives in a single SQLite file by default (see Settings.db_url).
open_history() is the one-call setup used by the CLI: engine, tables and
session factory.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ulb.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for history models."""


def _ensure_sqlite_dir(db_url: str) -> None:
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return
    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def get_engine(db_url: str | None = None) -> Engine:
    """Create an engine for the history database.

    The parent directory of a file-backed SQLite database is created.

    Args:
        db_url: Database URL (settings value if omitted).
    """
    if db_url is None:
        db_url = get_settings().db_url
    _ensure_sqlite_dir(db_url)
    return create_engine(db_url)


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    if engine is None:
        engine = get_engine()
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_all_tables(engine: Engine | None = None) -> None:
    """Create the history tables if they do not exist."""
    # Importing registers the models on Base.metadata
    from ulb import history  # noqa: F401

    Base.metadata.create_all(bind=engine if engine is not None else get_engine())


def open_history(db_url: str | None = None) -> sessionmaker[Session]:
    """Return a session factory for an initialised history database."""
    engine = get_engine(db_url)
    create_all_tables(engine)
    return get_session_factory(engine)


@contextmanager
def get_session(
    session_factory: sessionmaker[Session] | None = None,
) -> Iterator[Session]:
    """Session scope that commits on success and rolls back on error."""
    factory = session_factory if session_factory is not None else open_history()
    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


__all__ = [
    "Base",
    "create_all_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "open_history",
]
