"""Pytest configuration and shared fixtures.

This module provides fixtures for testing novelverse, including an
in-memory progress store, temporary databases and CLI helpers.
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import Generator, Optional

import pytest

from novelverse.config import reset_config
from novelverse.db.sqlite import Database
from novelverse.exceptions import TransientError
from novelverse.reading.schemas import BookRef, ReadingProgress, UpsertResult


# ============================================================================
# Fake Progress Store
# ============================================================================


class FakeProgressStore:
    """In-memory ProgressStore that records every call.

    Failures can be scripted: ``fail_next_upserts`` makes that many upserts
    raise TransientError before they start succeeding again.
    """

    def __init__(self, saved: Optional[ReadingProgress] = None):
        self.saved = saved
        self.upserts: list[tuple[str, str, int, int]] = []
        self.opens: list[tuple[str, str]] = []
        self.fetch_error: Optional[Exception] = None
        self.open_error: Optional[Exception] = None
        self.fail_next_upserts = 0
        self.upsert_delay = 0.0
        self.completed_override: Optional[bool] = None
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def fetch_progress(self, user_id, book_id):
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.saved

    def upsert_progress(self, user_id, book_slug, current_page, total_pages):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.upsert_delay:
                threading.Event().wait(self.upsert_delay)
            self.upserts.append((user_id, book_slug, current_page, total_pages))
            if self.fail_next_upserts:
                self.fail_next_upserts -= 1
                raise TransientError("server unavailable")
        finally:
            with self._lock:
                self.in_flight -= 1

        completed = current_page >= total_pages
        if self.completed_override is not None:
            completed = self.completed_override
        return UpsertResult(completed=completed)

    def fetch_heatmap(self, year):
        return []

    def track_open(self, user_id, book_id):
        self.opens.append((user_id, book_id))
        if self.open_error is not None:
            raise self.open_error

    @property
    def pages_written(self) -> list[int]:
        return [page for _, _, page, _ in self.upserts]


@pytest.fixture
def store() -> FakeProgressStore:
    """Create an empty fake progress store."""
    return FakeProgressStore()


@pytest.fixture
def book() -> BookRef:
    """A sample book reference."""
    return BookRef(id="42", slug="the-hobbit", title="The Hobbit")


@pytest.fixture
def saved_progress() -> ReadingProgress:
    """Progress saved at page 37 of 100."""
    return ReadingProgress(
        user_id="user-1",
        book_id="42",
        book_slug="the-hobbit",
        current_page=37,
        total_pages=100,
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db() -> Database:
    """Create an in-memory test database."""
    database = Database(":memory:")
    database.create_tables()
    return database


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def novelverse_env(tmp_path: Path) -> Generator[Path, None, None]:
    """Point every novelverse path at a temporary directory."""
    reset_config()
    keys = {
        "NOVELVERSE_DB_PATH": str(tmp_path / "progress.db"),
        "NOVELVERSE_CREDENTIALS_PATH": str(tmp_path / "credentials.json"),
        "NOVELVERSE_API_URL": "http://api.test",
    }
    previous = {key: os.environ.get(key) for key in keys}
    os.environ.update(keys)

    yield tmp_path

    for key, value in previous.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
    reset_config()


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_app():
    """Get the CLI app for testing."""
    from novelverse.cli import app
    return app
