"""Pydantic schemas for books, reading progress and users.

Field names are snake_case; the API speaks camelCase, so every model that
is parsed from an API payload accepts the camelCase alias as well.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for models parsed from API payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
        # Backend issues integer ids
        coerce_numbers_to_str=True,
    )


# ============================================================================
# Books
# ============================================================================


class BookRef(ApiModel):
    """Identity of the book being read."""

    id: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    title: Optional[str] = None


class Book(ApiModel):
    """A catalog book."""

    id: str
    slug: Optional[str] = None
    title: str
    author: str
    description: Optional[str] = None
    category: Optional[str] = None
    cover_image: Optional[str] = None
    pdf_url: Optional[str] = None
    file_size: Optional[int] = None
    published_at: Optional[str] = None
    is_featured: bool = False
    page_count: Optional[int] = None
    language: Optional[str] = None

    def to_ref(self) -> BookRef:
        """Reduce to the identity used by reading sessions."""
        return BookRef(id=self.id, slug=self.slug or self.id, title=self.title)


# ============================================================================
# Reading Progress
# ============================================================================


class ReadingProgress(ApiModel):
    """Saved reading position for one (user, book) pair."""

    user_id: str
    book_id: str
    book_slug: Optional[str] = None
    current_page: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=1)
    is_completed: bool = False
    last_read_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _page_within_book(self) -> "ReadingProgress":
        if self.current_page > self.total_pages:
            raise ValueError(
                f"current_page {self.current_page} exceeds total_pages {self.total_pages}"
            )
        return self

    @computed_field
    @property
    def progress_percent(self) -> float:
        """Percentage of the book read."""
        return self.current_page / self.total_pages * 100


class UpsertResult(ApiModel):
    """Response of a progress upsert."""

    completed: bool = False
    progress: Optional[ReadingProgress] = None


class ContinueReadingBook(ApiModel):
    """A partially read book for the "continue reading" shelf."""

    book_id: str
    slug: str
    title: str
    author: Optional[str] = None
    cover_image: Optional[str] = None
    current_page: int
    total_pages: int
    progress_percent: float
    last_read_at: Optional[datetime] = None


# ============================================================================
# Users
# ============================================================================


class User(ApiModel):
    """An authenticated reader."""

    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    books_read: int = 0

    @property
    def display_name(self) -> str:
        """Full name, falling back to the email address."""
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email


class AuthResponse(ApiModel):
    """Response of login/register."""

    message: str = ""
    token: Optional[str] = None
    user: Optional[User] = None


class FavoriteStatus(ApiModel):
    """Result of toggling or checking a favorite."""

    success: bool = True
    is_favorite: bool
    message: Optional[str] = None


# ============================================================================
# Tracker events
# ============================================================================


class EventKind(str, Enum):
    """Notifications emitted by a reading session tracker."""

    RESUMING = "resuming"
    SAVING = "saving"
    SAVED = "saved"
    COMPLETED = "completed"
    SAVE_FAILED = "save_failed"
