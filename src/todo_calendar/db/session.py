from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from todo_calendar.config import settings


def _resolve_db_path(sqlite_path: str | Path | None = None) -> Path:
    db_path = Path(sqlite_path or settings.sqlite_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    return db_path.resolve()


def build_database_url(sqlite_path: str | Path | None = None) -> str:
    return f"sqlite+pysqlite:///{_resolve_db_path(sqlite_path).as_posix()}"


def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str | None = None) -> Engine:
    if url is None:
        db_path = _resolve_db_path()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        url = build_database_url(db_path)
    engine = create_engine(url, future=True)
    event.listen(engine, "connect", _set_sqlite_pragma)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


_default_factory: sessionmaker[Session] | None = None


def _get_default_factory() -> sessionmaker[Session]:
    global _default_factory
    if _default_factory is None:
        _default_factory = create_session_factory(create_db_engine())
    return _default_factory


@contextmanager
def get_session(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    session = (factory or _get_default_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
