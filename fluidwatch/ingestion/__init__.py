"""
Measurement ingestion.

Example:
    >>> from fluidwatch.ingestion import create_measurement_store
    >>> store = create_measurement_store(storage, config.measurements)
"""

from fluidwatch.ingestion.store import (
    MeasurementStore,
    create_measurement_store,
    DEFAULT_RATE_WINDOW,
)

__all__: list[str] = [
    "MeasurementStore",
    "create_measurement_store",
    "DEFAULT_RATE_WINDOW",
]
