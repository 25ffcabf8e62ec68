"""Database engine and session management."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from docduck.utils.exceptions import StoreError

from .base import Base

logger = logging.getLogger(__name__)

_URL_PREFIXES = ("sqlite:", "postgresql", "postgres:", "mysql")


class Database:
    """Engine, session factory and schema for the DocDuck tables.

    Accepts either a SQLAlchemy URL or a filesystem path, which is treated as
    a SQLite database file.
    """

    engine: Engine
    session_factory: sessionmaker[Session]
    database_url: str
    db_path: Path | None

    def __init__(self, url_or_path: str | Path, *, echo: bool = False) -> None:
        if isinstance(url_or_path, Path) or not str(url_or_path).startswith(_URL_PREFIXES):
            self.db_path = Path(url_or_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.database_url = f"sqlite:///{self.db_path}"
        else:
            self.database_url = str(url_or_path)
            self.db_path = None

        if self.database_url.startswith("sqlite:"):
            self.engine = create_engine(
                self.database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(self.database_url, echo=echo, pool_pre_ping=True)

        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def initialize_schema(self) -> None:
        """Create every DocDuck table that does not exist yet.

        Raises:
            StoreError: If the database cannot be reached
        """
        # Register the mapped classes on Base.metadata
        from . import models  # noqa: F401

        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError("initialize_schema", original_error=e) from e
        logger.debug("Schema initialized for %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Get a database session with automatic cleanup."""
        session = self.session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def insert(self, table: Any) -> Any:
        """Return an INSERT construct that supports ``on_conflict_do_update``.

        Raises:
            StoreError: If the dialect has no native upsert
        """
        if self.dialect_name == "sqlite":
            return sqlite.insert(table)
        if self.dialect_name == "postgresql":
            return postgresql.insert(table)
        raise StoreError("upsert", f"dialect '{self.dialect_name}' has no supported upsert")

    def dispose(self) -> None:
        self.engine.dispose()
