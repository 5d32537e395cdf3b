"""Engine, session factory and FastAPI dependency for the message store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi.requests import HTTPConnection
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from inbox.config import get_settings

Base = declarative_base()


class DatabaseManager:
    def __init__(self, database_url: Optional[str] = None) -> None:
        settings = get_settings()
        url = database_url or settings.database_url
        if not url:
            raise ValueError("Database URL is not set.")
        self.engine = self._build_engine(url)
        self.session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    @staticmethod
    def _build_engine(url: str) -> Engine:
        if url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        settings = get_settings()
        return create_engine(
            url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )

    def create_all(self) -> None:
        # Import models so they register on Base.metadata
        import inbox.models  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def db_session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(connection: HTTPConnection) -> Iterator[Session]:
    """FastAPI dependency yielding a session from the app's DatabaseManager."""
    manager: DatabaseManager = connection.app.state.db_manager
    with manager.db_session() as session:
        yield session
