"""Engine and session helpers."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from coop_relay.config import DEFAULT_DATABASE_URL

from .base import Base


def get_database_url() -> str:
    """Get DB URL from environment."""
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


@lru_cache(maxsize=4)
def get_engine(database_url: str | None = None) -> Engine:
    """Create and cache SQLAlchemy engine."""
    return create_engine(database_url or get_database_url(), pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    """Create missing tables; a fresh local SQLite file has none."""
    from . import models  # noqa: F401  # ensure metadata is imported

    Base.metadata.create_all(engine)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Context manager for DB session lifecycle."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
