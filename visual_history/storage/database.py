"""Database session management."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig
from ..logging_utils import get_logger
from .models import Base

T = TypeVar("T")


class DatabaseManager:
    """Configure SQLAlchemy engine and provide sessions."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._log = get_logger("db")
        url = make_url(config.url)
        self._sqlite_path: Path | None = None
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            self._sqlite_path = Path(url.database)
            self._sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        engine_kwargs: dict[str, object] = {"echo": config.echo}
        if url.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self._sqlite_path is None:
                engine_kwargs["poolclass"] = StaticPool
        self._engine = create_engine(config.url, **engine_kwargs)
        if url.get_backend_name() == "sqlite":
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._log.info("Database connected at {}", config.url)

    @property
    def engine(self):
        return self._engine

    @property
    def sqlite_path(self) -> Path | None:
        return self._sqlite_path

    @contextmanager
    def session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def transaction(self, fn: Callable[[Session], T]) -> T:
        with self.session() as session:
            return fn(session)

    def dispose(self) -> None:
        self._engine.dispose()

    def destroy(self) -> None:
        """Drop every table and remove the backing SQLite file, if any."""

        Base.metadata.drop_all(self._engine)
        self._engine.dispose()
        if self._sqlite_path is not None:
            name = self._sqlite_path.name
            for suffix in ("", "-journal", "-wal", "-shm"):
                self._sqlite_path.with_name(name + suffix).unlink(missing_ok=True)
        self._log.warning("Database destroyed at {}", self._config.url)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
