# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy declarative base, the process-wide store handle, and the FastAPI
dependency that provides a DB session per request.

The store is a single SQLite file.  A restore closes the handle, swaps the
file underneath it and reopens it, so nothing may keep a reference to the
engine: always go through ``store`` (``store.engine``, ``store.session()``).
"""

import sqlite3
import threading
from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from core.config import settings
from core.exceptions import StoreUnavailable
from core.logger import logger

Base = declarative_base()


class Store:
    """Owner of the one live engine.  ``close()`` / ``reopen()`` swap it out."""

    def __init__(self):
        self.path: Path | None = None
        self._engine: Engine | None = None
        self._factory: sessionmaker | None = None
        self._lock = threading.RLock()
        # Held for the whole of a restore; the session sweep skips a cycle
        # rather than wait for it.
        self.maintenance_lock = threading.Lock()

    # -- lifecycle -----------------------------------------------------------

    def open(self, path: Path | str | None = None) -> None:
        with self._lock:
            if self._engine is not None:
                self.close()
            self.path = Path(path) if path is not None else settings.database_file
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # check_same_thread=False: FastAPI runs sync handlers in a threadpool
            self._engine = create_engine(
                f"sqlite:///{self.path}",
                connect_args={"check_same_thread": False},
            )
            self._factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
            logger.info("Store opened at %s", self.path)

    def close(self) -> None:
        with self._lock:
            if self._engine is None:
                return
            self._engine.dispose()
            self._engine = None
            self._factory = None
            logger.info("Store closed")

    def reopen(self) -> None:
        """Close the current engine (if any) and connect again to ``self.path``."""
        if self.path is None:
            raise RuntimeError("Store was never opened")
        self.open(self.path)

    # -- access --------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        engine = self._engine
        if engine is None:
            raise StoreUnavailable()
        return engine

    def session(self) -> Session:
        with self._lock:
            if self._factory is None:
                raise StoreUnavailable()
            return self._factory()

    def table_names(self) -> list[str]:
        return inspect(self.engine).get_table_names()


store = Store()


def list_tables(path: Path | str) -> list[str]:
    """
    Open the SQLite file at *path* read-only and return its table names.
    Raises ``sqlalchemy.exc.SQLAlchemyError`` if the file cannot be opened or
    is not a database.
    """
    # as_uri() percent-encodes "#", "?" and "%", which SQLite would read as URI syntax
    uri = f"{Path(path).resolve().as_uri()}?mode=ro"
    engine = create_engine(
        "sqlite://",
        creator=lambda: sqlite3.connect(uri, uri=True, check_same_thread=False),
        poolclass=NullPool,
    )
    try:
        return inspect(engine).get_table_names()
    finally:
        engine.dispose()


def get_db():
    """
    FastAPI dependency.  Yields a session for the duration of the request,
    then closes it.  Use with Depends(get_db).
    """
    db = store.session()
    try:
        yield db
    finally:
        db.close()
