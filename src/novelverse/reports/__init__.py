"""Reports module for reading activity visualization."""

from novelverse.reports.heatmap import (
    INTENSITY_THRESHOLDS,
    LEGEND,
    build_heatmap,
    current_streak,
    intensity_level,
    parse_samples,
)
from novelverse.reports.schemas import (
    CalendarCell,
    HeatmapGrid,
    HeatmapSample,
    HeatmapWeek,
    MonthLabel,
)

__all__ = [
    # Aggregation
    "build_heatmap",
    "current_streak",
    "intensity_level",
    "parse_samples",
    "INTENSITY_THRESHOLDS",
    "LEGEND",
    # Heatmap schemas
    "HeatmapSample",
    "CalendarCell",
    "HeatmapWeek",
    "MonthLabel",
    "HeatmapGrid",
]
