"""SQLite engine and unit-of-work sessions for the offline store."""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

MEMORY = ":memory:"


def _make_engine(db_path: str) -> Engine:
    if db_path == MEMORY:
        # One shared connection, otherwise every checkout sees an empty database.
        # LocalProgressStore serializes its calls, so executor threads never overlap on it.
        return create_engine(
            f"sqlite:///{MEMORY}",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )


class Database:
    """Owns the engine for one progress database.

    Args:
        db_path: File path, or ":memory:" for a throwaway database
    """

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        if str(db_path) != MEMORY:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = _make_engine(str(db_path))
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Yield a session that commits on success and rolls back on any error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
