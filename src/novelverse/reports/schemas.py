"""Pydantic schemas for the reading activity heatmap."""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from ..exceptions import MalformedSampleError

# Alias so CalendarCell can name its field "date"
Day = date


class HeatmapSample(BaseModel):
    """Pages read on one calendar day."""

    date: date
    pages_read: int = Field(0, ge=0)

    @classmethod
    def from_raw(cls, raw: Any) -> "HeatmapSample":
        """Parse a sample from an API payload entry.

        Accepts a HeatmapSample, or a mapping with ``date`` and either
        ``pagesRead`` or ``pages_read``. Dates may be date/datetime objects
        or ISO strings; for timestamps only the calendar day is kept.

        Raises:
            MalformedSampleError: If the entry can't be parsed
        """
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            raise MalformedSampleError(f"Unsupported sample: {raw!r}")

        pages = raw.get("pagesRead", raw.get("pages_read", 0))
        try:
            return cls(date=_parse_day(raw.get("date")), pages_read=pages)
        except (ValidationError, TypeError, ValueError) as e:
            raise MalformedSampleError(
                f"Malformed heatmap sample: {raw!r}", details={"error": str(e)}
            ) from e


class CalendarCell(BaseModel):
    """One cell of the heatmap grid. ``date`` is None for padding cells."""

    date: Optional[Day] = None
    pages_read: int = 0
    level: int = Field(0, ge=0, le=4)  # 0=none, 1=light, 2=medium, 3=high, 4=very high

    @property
    def is_padding(self) -> bool:
        return self.date is None


class HeatmapWeek(BaseModel):
    """A Sunday-first column of seven cells."""

    index: int
    cells: list[CalendarCell] = Field(..., min_length=7, max_length=7)

    @property
    def total_pages(self) -> int:
        return sum(cell.pages_read for cell in self.cells)


class MonthLabel(BaseModel):
    """Position of a month name above the grid."""

    month: int = Field(..., ge=1, le=12)
    label: str
    week_index: int


class HeatmapGrid(BaseModel):
    """Full year heatmap data."""

    year: int
    weeks: list[HeatmapWeek]
    month_labels: list[MonthLabel]
    total_pages: int = 0
    active_days: int = 0
    longest_streak: int = 0

    def days(self) -> list[CalendarCell]:
        """All non-padding cells in calendar order."""
        return [cell for week in self.weeks for cell in week.cells if not cell.is_padding]

    def cell_for(self, day: date) -> Optional[CalendarCell]:
        """Find the cell for a given day, or None if outside the year."""
        if day.year != self.year:
            return None
        for cell in self.days():
            if cell.date == day:
                return cell
        return None


def _parse_day(value: Any) -> date:
    """Parse a calendar day from a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Unparseable date: {value!r}")
