"""NovelVerse reading client: progress tracking and activity heatmaps."""

__version__ = "0.1.0"
