"""Reading session tracking and progress management."""

from .host import ConsoleViewer, ReadingSessionHost, Viewer
from .schemas import (
    Book,
    BookRef,
    ContinueReadingBook,
    EventKind,
    ReadingProgress,
    UpsertResult,
)
from .store import ProgressStore
from .tracker import (
    ProgressEvent,
    SessionProgressTracker,
    SessionState,
    TrackerState,
)

__all__ = [
    "Book",
    "BookRef",
    "ContinueReadingBook",
    "ReadingProgress",
    "UpsertResult",
    "ProgressStore",
    "SessionProgressTracker",
    "SessionState",
    "TrackerState",
    "ProgressEvent",
    "EventKind",
    "ReadingSessionHost",
    "ConsoleViewer",
    "Viewer",
]
