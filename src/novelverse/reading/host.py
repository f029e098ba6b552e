"""Reading session host.

Connects a page viewer to a SessionProgressTracker: seeks the viewer to
the saved page on open, forwards page changes while reading, and flushes
on close.
"""

import logging
from collections.abc import Callable
from typing import Optional, Protocol

from .schemas import BookRef
from .tracker import SessionProgressTracker

logger = logging.getLogger(__name__)

PageChangeCallback = Callable[[int], None]


class Viewer(Protocol):
    """A page-flip book viewer. Rendering is the viewer's business."""

    def on_page_change(self, callback: PageChangeCallback) -> None:
        ...

    def seek_to(self, page: int) -> None:
        ...

    def next_page(self) -> None:
        ...

    def prev_page(self) -> None:
        ...

    def zoom_in(self) -> None:
        ...

    def zoom_out(self) -> None:
        ...

    def reset_zoom(self) -> None:
        ...


class ConsoleViewer:
    """Minimal viewer that only tracks a page cursor and zoom level."""

    MIN_ZOOM = 0.5
    MAX_ZOOM = 3.0
    ZOOM_STEP = 0.25

    def __init__(self, total_pages: int):
        """Initialize viewer.

        Args:
            total_pages: Number of pages in the book
        """
        self.total_pages = total_pages
        self.page = 1
        self.zoom = 1.0
        self._callbacks: list[PageChangeCallback] = []

    def on_page_change(self, callback: PageChangeCallback) -> None:
        self._callbacks.append(callback)

    def seek_to(self, page: int) -> None:
        self._go(page)

    def next_page(self) -> None:
        self._go(self.page + 1)

    def prev_page(self) -> None:
        self._go(self.page - 1)

    def zoom_in(self) -> None:
        self.zoom = min(self.MAX_ZOOM, self.zoom + self.ZOOM_STEP)

    def zoom_out(self) -> None:
        self.zoom = max(self.MIN_ZOOM, self.zoom - self.ZOOM_STEP)

    def reset_zoom(self) -> None:
        self.zoom = 1.0

    def _go(self, page: int) -> None:
        page = max(1, min(page, self.total_pages))
        if page == self.page:
            return
        self.page = page
        for callback in list(self._callbacks):
            callback(page)


class ReadingSessionHost:
    """Owns one reading session for one viewer."""

    def __init__(
        self,
        viewer: Viewer,
        tracker: SessionProgressTracker,
        close_timeout: float = 5.0,
    ):
        """Initialize host.

        Args:
            viewer: Page viewer showing the book
            tracker: Tracker for this session (not shared with other sessions)
            close_timeout: Max seconds close(wait=True) waits for the final save
        """
        self.viewer = viewer
        self.tracker = tracker
        self.close_timeout = close_timeout
        self.resume_page: Optional[int] = None
        self._open = False

    async def open(self, user_id: str, book: BookRef, total_pages: int) -> Optional[int]:
        """Start the session and seek to the saved page.

        Returns:
            The page resumed from, or None if starting fresh
        """
        self.resume_page = await self.tracker.start(user_id, book, total_pages)
        self.viewer.on_page_change(self._on_page_change)
        self._open = True

        if self.resume_page is not None:
            logger.info("Resuming %s from page %d", book.slug, self.resume_page)
            self.viewer.seek_to(self.resume_page)

        return self.resume_page

    def _on_page_change(self, page: int) -> None:
        if self._open:
            self.tracker.on_page_changed(page)

    async def close(self, wait: bool = False) -> None:
        """End the session.

        Args:
            wait: Wait (up to close_timeout) for the final save to finish
        """
        if not self._open:
            return
        self._open = False
        self.tracker.stop()
        if wait:
            await self.tracker.wait_closed(self.close_timeout)

    async def __aenter__(self) -> "ReadingSessionHost":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close(wait=True)
