"""Database connection and session management for linetrack."""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the SQLAlchemy engine and hands out transactional sessions.

    Works against PostgreSQL in production and SQLite for local runs and
    tests. SQLite connections get foreign keys switched on so repository
    deletes cascade to snapshots, failures and top files.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = self._create_engine(database_url, echo)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"DatabaseManager initialized ({self.engine.dialect.name})")

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> Engine:
        if database_url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(database_url, echo=echo, **kwargs)

            @event.listens_for(engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute("PRAGMA busy_timeout=5000")
                cursor.close()

            return engine

        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    def create_tables(self) -> None:
        """Create all tables that don't exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("Database tables created/verified")

    def drop_tables(self) -> None:
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Transactional session scope: commit on success, rollback on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def check_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database connection check failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()


_db_manager: Optional[DatabaseManager] = None


def get_database_manager(database_url: Optional[str] = None, echo: bool = False) -> DatabaseManager:
    """Return the process-wide DatabaseManager, creating it on first use."""
    global _db_manager
    if _db_manager is None:
        if database_url is None:
            from ..config import get_settings
            settings = get_settings()
            database_url = settings.database.url
            echo = settings.database.echo
        _db_manager = DatabaseManager(database_url, echo=echo)
    return _db_manager


def wait_for_db(db_manager: DatabaseManager, max_retries: int = 10, delay: float = 2.0) -> bool:
    """Block until the database answers or retries run out."""
    for attempt in range(1, max_retries + 1):
        if db_manager.check_connection():
            logger.info("Database is available")
            return True
        logger.info(f"Waiting for database (attempt {attempt}/{max_retries})...")
        time.sleep(delay)
    logger.error("Database not available after retries")
    return False
