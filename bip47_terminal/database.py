"""
Database connection and session management for the BIP47 Terminal.

Each application owns one ``Database``; the guestbook is its only user.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from bip47_terminal.models import Base

logger = logging.getLogger(__name__)


class Database:
    """SQLAlchemy engine plus a thread-scoped session factory."""

    def __init__(self, url: str, echo: bool = False, create_tables: Optional[bool] = None):
        self.url = url

        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if url.startswith("sqlite"):
            # SQLite doesn't support the same pooling args as PostgreSQL, and an
            # in-memory database must share a single connection.
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                {
                    "pool_size": 5,
                    "max_overflow": 10,
                    "pool_recycle": 3600,
                }
            )

        self.engine = create_engine(url, **engine_kwargs)
        self._session_factory = scoped_session(sessionmaker(bind=self.engine, expire_on_commit=False))

        if create_tables is None:
            create_tables = url.startswith("sqlite")
        if create_tables:
            Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized: {url.split('@')[1] if '@' in url else url}")

    def get_session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        Commits on success, rolls back and re-raises on error.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise
        finally:
            session.close()

    def remove_session(self) -> None:
        """Discard the current thread's session (called on app context teardown)."""
        self._session_factory.remove()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def check_health(self) -> dict:
        """
        Check database connection health.

        Returns:
            Dictionary with health status
        """
        try:
            with self.session_scope() as session:
                session.execute(text("SELECT 1"))
            return {"status": "healthy", "connected": True}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "connected": False, "error": str(e)}

    def close(self) -> None:
        self._session_factory.remove()
        self.engine.dispose()
        logger.info("Database connections closed")
