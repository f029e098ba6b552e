"""Local database layer for offline progress tracking."""

from .models import Base, BookOpen, DailyActivity, ProgressRecord
from .sqlite import Database
from .store import LocalProgressStore

__all__ = [
    "Base",
    "ProgressRecord",
    "DailyActivity",
    "BookOpen",
    "Database",
    "LocalProgressStore",
]
