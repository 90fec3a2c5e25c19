"""
Database session management and connection configuration.

Provides transactional session scopes using SQLAlchemy's modern patterns.
Designed for local-first, single-user operation with SQLite. The
DatabaseManager is constructed by the composition root and passed to the
services that need it.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base
from config import config


class DatabaseManager:
    """
    Manages database connections and sessions.

    Usage:
        db = DatabaseManager()
        with db.session() as session:
            positions = PositionRepository(session).get_all()
    """

    def __init__(self, db_url: Path | str | None = None):
        """
        Initialize database manager.

        Args:
            db_url: Optional custom database URL.
        """
        self.db_url = str(db_url) if db_url else config.database.url
        connect_args = {}
        if self.db_url.startswith("sqlite"):
            # Sessions are also opened from worker threads
            connect_args["check_same_thread"] = False
        if self.db_url.startswith("sqlite:///"):
            Path(self.db_url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            self.db_url,
            connect_args=connect_args,
            echo=False,  # Set True for SQL debugging
            future=True,
        )
        self._session_factory = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
        )

    def create_tables(self) -> None:
        """Create all tables defined in models."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        Automatically commits on success, rolls back on exception.

        Yields:
            SQLAlchemy Session object.

        Example:
            with db.session() as session:
                session.add(position)
        """
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()


def init_db(db_url: Path | str | None = None, if_drop: bool = False) -> DatabaseManager:
    """
    Initialize the database with all tables.

    Args:
        db_url: Optional custom database URL.
        if_drop: If True, drop existing tables before creating.

    Returns:
        Initialized DatabaseManager instance.
    """
    db = DatabaseManager(db_url)
    if if_drop:
        db.drop_tables()
    db.create_tables()
    return db
