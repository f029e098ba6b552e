"""Progress store contract.

A reading session only needs four operations from its backend. Both the
HTTP client (novelverse.api.client) and the local SQLite store
(novelverse.db.store) satisfy this protocol.
"""

from typing import Optional, Protocol, runtime_checkable

from ..reports.schemas import HeatmapSample
from .schemas import ReadingProgress, UpsertResult


@runtime_checkable
class ProgressStore(Protocol):
    """Where reading positions are fetched from and persisted to."""

    def fetch_progress(self, user_id: str, book_id: str) -> Optional[ReadingProgress]:
        """Saved progress for a book, or None if the user never opened it."""
        ...

    def upsert_progress(
        self,
        user_id: str,
        book_slug: str,
        current_page: int,
        total_pages: int,
    ) -> UpsertResult:
        """Create or update progress.

        Raises:
            TransientError: On any network or server problem
        """
        ...

    def fetch_heatmap(self, year: int) -> list[HeatmapSample]:
        """Per-day pages read for a year."""
        ...

    def track_open(self, user_id: str, book_id: str) -> None:
        """Record that a book was opened. Best-effort."""
        ...
