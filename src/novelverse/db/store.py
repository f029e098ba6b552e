"""Local progress store backed by SQLite.

Implements the ProgressStore protocol for offline reading. Books are keyed
by slug locally, so callers pass the slug wherever a book id is expected.

Every upsert that moves forward adds the page delta to the day's activity
row, which is what the local heatmap reads.

Calls are serialized with a lock. The tracker runs them from executor
threads, and an in-memory database has only one connection to share.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Callable, Generator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import TransientError
from ..reading.schemas import ReadingProgress, UpsertResult
from ..reports.heatmap import parse_samples
from ..reports.schemas import HeatmapSample
from .models import BookOpen, DailyActivity, ProgressRecord
from .sqlite import Database

logger = logging.getLogger(__name__)


class LocalProgressStore:
    """ProgressStore that keeps everything in a local SQLite database."""

    def __init__(
        self,
        db: Database,
        owner_id: Optional[str] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize store.

        Args:
            db: Database instance
            owner_id: Only report this user's activity in fetch_heatmap
            today: Clock used to date activity rows
        """
        self.db = db
        self.owner_id = owner_id
        self._today = today
        self._lock = threading.Lock()

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        with self._lock:
            try:
                with self.db.get_session() as session:
                    yield session
            except SQLAlchemyError as e:
                raise TransientError(f"Local database error: {e}") from e

    def fetch_progress(self, user_id: str, book_id: str) -> Optional[ReadingProgress]:
        """Get saved progress for a book (looked up by slug)."""
        with self._session() as session:
            record = self._get_record(session, user_id, book_id)
            if record is None:
                return None
            return _to_progress(record)

    def upsert_progress(
        self,
        user_id: str,
        book_slug: str,
        current_page: int,
        total_pages: int,
    ) -> UpsertResult:
        """Create or update progress and record the day's pages read.

        Raises:
            ValueError: If the page is outside the book
            TransientError: If the database write fails
        """
        if total_pages < 1 or not 1 <= current_page <= total_pages:
            raise ValueError(f"Page {current_page} outside 1..{total_pages}")

        now = datetime.now(timezone.utc).isoformat()
        completed = current_page == total_pages

        with self._session() as session:
            record = self._get_record(session, user_id, book_slug)
            if record is None:
                previous_page = 0
                record = ProgressRecord(
                    user_id=user_id,
                    book_slug=book_slug,
                    total_pages=total_pages,
                )
                session.add(record)
            else:
                previous_page = record.current_page

            record.current_page = current_page
            record.total_pages = total_pages
            record.last_read_at = now
            if completed and not record.is_completed:
                record.completed_at = now
            record.is_completed = record.is_completed or completed

            pages_read = current_page - previous_page
            if pages_read > 0:
                self._add_activity(session, user_id, pages_read)

            session.flush()
            progress = _to_progress(record)

        return UpsertResult(completed=completed, progress=progress)

    def fetch_heatmap(self, year: int) -> list[HeatmapSample]:
        """Pages read per day for a year."""
        start_date = f"{year}-01-01"
        end_date = f"{year}-12-31"

        with self._session() as session:
            stmt = select(DailyActivity).where(
                DailyActivity.date >= start_date,
                DailyActivity.date <= end_date,
            )
            if self.owner_id:
                stmt = stmt.where(DailyActivity.user_id == self.owner_id)
            rows = session.execute(stmt.order_by(DailyActivity.date)).scalars().all()

            # Several users may share a day when no owner is set
            pages_by_day: dict[str, int] = {}
            for row in rows:
                pages_by_day[row.date] = pages_by_day.get(row.date, 0) + row.pages_read

        return parse_samples(
            {"date": day, "pages_read": pages} for day, pages in pages_by_day.items()
        )

    def track_open(self, user_id: str, book_id: str) -> None:
        """Record a book being opened."""
        with self._session() as session:
            session.add(BookOpen(user_id=user_id, book_id=book_id))

    def count_opens(self, user_id: str, book_id: str) -> int:
        """Number of times a user opened a book."""
        with self._session() as session:
            stmt = select(BookOpen).where(
                BookOpen.user_id == user_id,
                BookOpen.book_id == book_id,
            )
            return len(session.execute(stmt).scalars().all())

    def in_progress(self, user_id: str, limit: int = 10) -> list[ReadingProgress]:
        """Unfinished books, most recently read first."""
        with self._session() as session:
            stmt = (
                select(ProgressRecord)
                .where(
                    ProgressRecord.user_id == user_id,
                    ProgressRecord.is_completed.is_(False),
                )
                .order_by(ProgressRecord.last_read_at.desc())
                .limit(limit)
            )
            return [_to_progress(r) for r in session.execute(stmt).scalars().all()]

    def _get_record(self, session, user_id: str, book_slug: str) -> Optional[ProgressRecord]:
        stmt = select(ProgressRecord).where(
            ProgressRecord.user_id == user_id,
            ProgressRecord.book_slug == book_slug,
        )
        return session.execute(stmt).scalar_one_or_none()

    def _add_activity(self, session, user_id: str, pages_read: int) -> None:
        day = self._today().isoformat()
        stmt = select(DailyActivity).where(
            DailyActivity.user_id == user_id,
            DailyActivity.date == day,
        )
        activity = session.execute(stmt).scalar_one_or_none()
        if activity is None:
            session.add(DailyActivity(user_id=user_id, date=day, pages_read=pages_read))
        else:
            activity.pages_read += pages_read


def _to_progress(record: ProgressRecord) -> ReadingProgress:
    return ReadingProgress(
        user_id=record.user_id,
        book_id=record.book_slug,
        book_slug=record.book_slug,
        current_page=record.current_page,
        total_pages=record.total_pages,
        is_completed=record.is_completed,
        last_read_at=datetime.fromisoformat(record.last_read_at) if record.last_read_at else None,
    )
