"""SQLAlchemy ORM models for the local SQLite store.

Tables:
- reading_progress: Saved position per (user, book)
- daily_activity: Pages read per (user, day), feeds the heatmap
- book_opens: One row per opened reading session
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProgressRecord(Base):
    """Saved reading position for one book."""

    __tablename__ = "reading_progress"
    __table_args__ = (UniqueConstraint("user_id", "book_slug", name="uq_progress_user_book"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    book_slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    current_page: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_pages: Mapped[int] = mapped_column(Integer, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    last_read_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    completed_at: Mapped[Optional[str]] = mapped_column(String(32))

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord(book_slug={self.book_slug}, "
            f"page={self.current_page}/{self.total_pages})>"
        )


class DailyActivity(Base):
    """Pages read by a user on one day."""

    __tablename__ = "daily_activity"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_activity_user_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # ISO date
    pages_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<DailyActivity(date={self.date}, pages_read={self.pages_read})>"


class BookOpen(Base):
    """A book being opened in the reader."""

    __tablename__ = "book_opens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    book_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    opened_at: Mapped[str] = mapped_column(String(32), default=utc_now)
