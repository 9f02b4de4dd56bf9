"""
Series aggregation.

Example:
    >>> from fluidwatch.series import create_series
    >>> series = create_series(measurements, SeriesGranularity.DAY)
"""

from fluidwatch.series.aggregator import create_series, series_window

__all__: list[str] = [
    "create_series",
    "series_window",
]
