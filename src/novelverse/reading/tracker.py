"""Reading progress tracking for an active reading session.

Keeps a book's saved position in step with the viewer without writing on
every page turn. Page changes are debounced (trailing edge), writes are
serialized, and whatever is still pending when the session ends gets one
last best-effort flush.

State machine::

    IDLE --page change--> DIRTY --timer--> FLUSHING --ok--> IDLE
                            ^                  |
                            +---page moved/----+
                                  failed

    any --stop()--> CLOSED
"""

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..config import DEFAULT_DEBOUNCE_SECONDS
from ..exceptions import NotFoundError, NovelVerseError
from .schemas import BookRef, EventKind, ReadingProgress, UpsertResult
from .store import ProgressStore

logger = logging.getLogger(__name__)


class TrackerState(str, Enum):
    """Lifecycle state of a tracker."""

    IDLE = "idle"
    DIRTY = "dirty"
    FLUSHING = "flushing"
    CLOSED = "closed"


@dataclass
class SessionState:
    """In-memory position for one session."""

    current_page: int = 1
    pending_write: bool = False
    last_flushed_page: Optional[int] = None


@dataclass
class ProgressEvent:
    """A notification for the session host."""

    kind: EventKind
    page: Optional[int] = None
    saving: Optional[bool] = None
    error: Optional[Exception] = None


ProgressListener = Callable[[ProgressEvent], Any]


class SessionProgressTracker:
    """Debounces and persists page changes for one reading session."""

    def __init__(
        self,
        store: ProgressStore,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        """Initialize tracker.

        Args:
            store: Where progress is fetched from and saved to
            debounce_seconds: Quiet period after the last page change before saving
        """
        self.store = store
        self.debounce_seconds = debounce_seconds

        self.state = TrackerState.IDLE
        self.session = SessionState()

        self.user_id: Optional[str] = None
        self.book: Optional[BookRef] = None
        self.total_pages: Optional[int] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._final_flush: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._changed_during_flush = False

        self._listeners: list[ProgressListener] = []
        self._resume_notified = False
        self._completion_notified = False

    # ========================================================================
    # Listeners
    # ========================================================================

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener for progress events.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: EventKind, **fields) -> None:
        event = ProgressEvent(kind=kind, **fields)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Progress listener failed on %s event", kind.value)

    # ========================================================================
    # Session lifecycle
    # ========================================================================

    async def start(self, user_id: str, book: BookRef, total_pages: int) -> Optional[int]:
        """Start the session and look up where the reader left off.

        Args:
            user_id: Reader's ID
            book: Book being opened
            total_pages: Page count of this edition

        Returns:
            Page to resume from, or None to start at page 1
        """
        if self._loop is not None:
            raise RuntimeError("Tracker already started")
        if total_pages < 1:
            raise ValueError(f"total_pages must be at least 1, got {total_pages}")

        self._loop = asyncio.get_running_loop()
        self.user_id = user_id
        self.book = book
        self.total_pages = total_pages

        self._spawn(self._track_open())

        progress = await self._fetch_saved_progress()
        if progress is None:
            return None

        saved_page = min(progress.current_page, total_pages)
        self.session.current_page = saved_page
        self.session.last_flushed_page = saved_page

        if saved_page <= 1:
            return None

        if not self._resume_notified:
            self._resume_notified = True
            self._emit(EventKind.RESUMING, page=saved_page)
        return saved_page

    async def _fetch_saved_progress(self) -> Optional[ReadingProgress]:
        try:
            return await self._run(self.store.fetch_progress, self.user_id, self.book.id)
        except NotFoundError:
            return None
        except NovelVerseError as e:
            logger.warning("Could not load saved progress for %s: %s", self.book.slug, e)
            return None

    async def _track_open(self) -> None:
        try:
            await self._run(self.store.track_open, self.user_id, self.book.id)
        except Exception as e:
            # Open tracking never blocks reading
            logger.debug("Open tracking failed for %s: %s", self.book.id, e)

    def stop(self) -> Optional[asyncio.Task]:
        """End the session.

        Cancels the debounce timer and, if a change hasn't been saved yet,
        schedules one final save. The final save is not retried. The close
        task also waits for the open-tracking call so it isn't dropped.

        Returns:
            The close task, or None if nothing was outstanding
        """
        if self.state is TrackerState.CLOSED:
            return self._final_flush

        self._cancel_timer()
        self.state = TrackerState.CLOSED

        if self._loop is None:
            return None
        if not self.session.pending_write and not self._background:
            return None

        self._final_flush = self._loop.create_task(
            self._close(flush=self.session.pending_write)
        )
        return self._final_flush

    async def wait_closed(self, timeout: Optional[float] = None) -> None:
        """Wait for the close task scheduled by stop(), if any."""
        if self._final_flush is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._final_flush), timeout)
        except asyncio.TimeoutError:
            logger.warning("Gave up waiting for the final progress save")

    # ========================================================================
    # Page changes
    # ========================================================================

    def on_page_changed(self, page: int) -> None:
        """Record the viewer's current page and (re)arm the save timer."""
        if self.state is TrackerState.CLOSED:
            logger.debug("Ignoring page %d after session end", page)
            return
        if self._loop is None:
            raise RuntimeError("start() must be called before page changes")

        page = max(1, min(page, self.total_pages))
        self.session.current_page = page
        self.session.pending_write = True
        self.state = TrackerState.DIRTY

        if self._in_flight is not None:
            # Re-armed once the running save finishes
            self._changed_during_flush = True
            return

        self._arm_timer()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._loop.call_later(self.debounce_seconds, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self.state is not TrackerState.DIRTY or self._in_flight is not None:
            return
        self._in_flight = self._loop.create_task(self._flush())

    # ========================================================================
    # Flushing
    # ========================================================================

    async def _flush(self) -> None:
        page = self.session.current_page
        self._changed_during_flush = False

        try:
            if page == self.session.last_flushed_page:
                return

            self.state = TrackerState.FLUSHING
            self._emit(EventKind.SAVING, page=page, saving=True)
            try:
                await self._persist(page)
            finally:
                self._emit(EventKind.SAVING, page=page, saving=False)
        finally:
            self._in_flight = None
            self._after_flush()

    def _after_flush(self) -> None:
        if self.state is TrackerState.CLOSED:
            return

        self.session.pending_write = (
            self.session.current_page != self.session.last_flushed_page
        )
        if not self.session.pending_write:
            self.state = TrackerState.IDLE
            return

        self.state = TrackerState.DIRTY
        if self._changed_during_flush:
            self._changed_during_flush = False
            self._arm_timer()
        # Otherwise the save failed; wait for the next page change or stop()

    async def _close(self, flush: bool) -> None:
        if flush:
            await self._flush_on_close()
        if self._background:
            await asyncio.wait(set(self._background))

    async def _flush_on_close(self) -> None:
        if self._in_flight is not None:
            await asyncio.wait({self._in_flight})

        page = self.session.current_page
        if page == self.session.last_flushed_page:
            self.session.pending_write = False
            return

        self._emit(EventKind.SAVING, page=page, saving=True)
        try:
            await self._persist(page)
        finally:
            self._emit(EventKind.SAVING, page=page, saving=False)

    async def _persist(self, page: int) -> Optional[UpsertResult]:
        """Save one page position. Failures are logged, never raised."""
        try:
            result = await self._run(
                self.store.upsert_progress,
                self.user_id,
                self.book.slug,
                page,
                self.total_pages,
            )
        except NovelVerseError as e:
            logger.warning("Failed to save progress for %s at page %d: %s", self.book.slug, page, e)
            self._emit(EventKind.SAVE_FAILED, page=page, error=e)
            return None

        self.session.last_flushed_page = page
        if self.session.current_page == page:
            self.session.pending_write = False
        logger.debug("Saved progress for %s at page %d", self.book.slug, page)
        self._emit(EventKind.SAVED, page=page)

        if result.completed and not self._completion_notified:
            self._completion_notified = True
            self._emit(EventKind.COMPLETED, page=page)

        return result

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _run(self, func, *args):
        """Run a blocking store call in the default executor."""
        return await self._loop.run_in_executor(None, functools.partial(func, *args))

    def _spawn(self, coro) -> None:
        task = self._loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @property
    def current_page(self) -> int:
        return self.session.current_page

    @property
    def is_saving(self) -> bool:
        return self._in_flight is not None

    @property
    def completion_notified(self) -> bool:
        return self._completion_notified
