from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from services.checkout.app.config import parse_bool

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///.local/sehaty_checkout.db"

_engine: Engine | None = None
_engine_url: str | None = None
_sessions: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Engine for the diagnostics database named by DATABASE_URL.

    Rebuilt whenever DATABASE_URL changes, disposing the previous one, so each test can
    point at its own file. SEHATY_DB_ECHO=true logs every statement.
    """

    global _engine, _engine_url, _sessions

    url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if _engine is not None and _engine_url == url:
        return _engine

    if _engine is not None:
        _engine.dispose()

    if url.startswith("sqlite") and ":///.local/" in url:
        os.makedirs(".local", exist_ok=True)

    # Events are written from the event loop and read from FastAPI's threadpool.
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    _engine = create_engine(
        url,
        echo=parse_bool(os.getenv("SEHATY_DB_ECHO", "false")),
        connect_args=connect_args,
    )
    _engine_url = url
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)
    return _engine


def db_session() -> Session:
    get_engine()
    assert _sessions is not None
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error."""

    db = db_session()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Generator[Session, None, None]:
    db = db_session()
    try:
        yield db
    finally:
        db.close()
