"""Reading activity heatmap aggregation.

Turns a sparse list of per-day samples into a GitHub-style calendar grid
for one year: Sunday-first weeks of seven cells, month label anchors and
a discrete intensity level per day.
"""

import calendar
import logging
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any

from ..exceptions import MalformedSampleError
from .schemas import CalendarCell, HeatmapGrid, HeatmapSample, HeatmapWeek, MonthLabel

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7

# Minimum pages for levels 1..4
INTENSITY_THRESHOLDS = (1, 10, 25, 50)

# (level, min pages, max pages or None for open-ended)
LEGEND = (
    (0, 0, 0),
    (1, 1, 9),
    (2, 10, 24),
    (3, 25, 49),
    (4, 50, None),
)


def intensity_level(pages_read: int) -> int:
    """Map a pages-read count to an intensity level (0-4)."""
    level = 0
    for threshold in INTENSITY_THRESHOLDS:
        if pages_read >= threshold:
            level += 1
    return level


def year_days(year: int) -> list[date]:
    """Every calendar day of the year, Jan 1 through Dec 31."""
    start = date(year, 1, 1)
    count = 366 if calendar.isleap(year) else 365
    return [start + timedelta(days=offset) for offset in range(count)]


def sunday_column(day: date) -> int:
    """Column of a day in a Sunday-first week (Sunday=0 ... Saturday=6)."""
    return (day.weekday() + 1) % DAYS_PER_WEEK


def parse_samples(raw_samples: Iterable[Any]) -> list[HeatmapSample]:
    """Parse raw samples, dropping any that are malformed."""
    samples = []
    for raw in raw_samples:
        try:
            samples.append(HeatmapSample.from_raw(raw))
        except MalformedSampleError as e:
            logger.warning("Dropping heatmap sample: %s", e.message)
    return samples


def build_heatmap(samples: Iterable[Any], year: int) -> HeatmapGrid:
    """Build the heatmap grid for a year.

    Samples dated outside ``year`` are ignored. If several samples share a
    date, the last one wins. Malformed samples are dropped.

    Args:
        samples: HeatmapSample objects or raw API entries
        year: Year to build the grid for

    Returns:
        HeatmapGrid with weeks, month labels and summary totals
    """
    pages_by_day: dict[date, int] = {}
    for sample in parse_samples(samples):
        if sample.date.year == year:
            pages_by_day[sample.date] = sample.pages_read

    days = year_days(year)

    # Left-pad the first week so Jan 1 sits in its weekday column
    cells: list[CalendarCell] = [CalendarCell() for _ in range(sunday_column(days[0]))]
    for day in days:
        pages = pages_by_day.get(day, 0)
        cells.append(CalendarCell(date=day, pages_read=pages, level=intensity_level(pages)))

    # Right-pad the last week
    while len(cells) % DAYS_PER_WEEK:
        cells.append(CalendarCell())

    weeks = [
        HeatmapWeek(index=i // DAYS_PER_WEEK, cells=cells[i:i + DAYS_PER_WEEK])
        for i in range(0, len(cells), DAYS_PER_WEEK)
    ]

    active = [day for day in days if pages_by_day.get(day, 0) > 0]

    return HeatmapGrid(
        year=year,
        weeks=weeks,
        month_labels=month_labels(weeks),
        total_pages=sum(pages_by_day.values()),
        active_days=len(active),
        longest_streak=_longest_run(active),
    )


def month_labels(weeks: list[HeatmapWeek]) -> list[MonthLabel]:
    """Anchor a label on each week whose first real day starts a new month."""
    labels = []
    last_month = None

    for week in weeks:
        first_day = next((cell.date for cell in week.cells if not cell.is_padding), None)
        if first_day is None:
            continue
        if week.index == 0 or first_day.month != last_month:
            last_month = first_day.month
            labels.append(MonthLabel(
                month=first_day.month,
                label=calendar.month_abbr[first_day.month],
                week_index=week.index,
            ))

    return labels


def current_streak(grid: HeatmapGrid, today: date) -> int:
    """Consecutive active days ending today (or yesterday).

    A streak survives until the end of the day after the last reading
    day, so not having read yet today doesn't break it.
    """
    active = {cell.date for cell in grid.days() if cell.pages_read > 0}

    day = today if today in active else today - timedelta(days=1)
    streak = 0
    while day in active:
        streak += 1
        day -= timedelta(days=1)
    return streak


def _longest_run(active_days: list[date]) -> int:
    """Length of the longest run of consecutive days in a sorted list."""
    if not active_days:
        return 0

    longest = 1
    streak = 1
    for i in range(1, len(active_days)):
        if (active_days[i] - active_days[i - 1]).days == 1:
            streak += 1
            longest = max(longest, streak)
        else:
            streak = 1

    return longest
