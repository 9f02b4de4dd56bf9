"""
Application state for the API service.

Holds the configuration and the collaborators built from it. One instance
lives on `app.state.fluidwatch`; routes receive it through the
`get_app_state` dependency rather than a module global.
"""

from datetime import datetime

from fastapi import Request

from fluidwatch.config.models import AppConfig
from fluidwatch.detection.sweeper import AlertSweeper, create_alert_sweeper
from fluidwatch.ingestion.store import MeasurementStore, create_measurement_store
from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.interfaces.storage import Storage
from fluidwatch.models.common import Clock


class AppState:
    """
    Application state container.

    Attributes:
        config: Validated application configuration.
        storage: Storage backend.
        notifier: Digest delivery.
        clock: Source of the current time.
        store: Measurement write path and range reads.
        sweeper: Alert sweep.
        start_time: When the state was created.
    """

    def __init__(
        self,
        config: AppConfig,
        storage: Storage,
        notifier: Notifier,
        clock: Clock,
    ) -> None:
        self.config = config
        self.storage = storage
        self.notifier = notifier
        self.clock = clock
        self.store: MeasurementStore = create_measurement_store(
            storage, config.measurements, clock
        )
        self.sweeper: AlertSweeper = create_alert_sweeper(
            storage, notifier, config.alerts, clock
        )
        self.start_time: datetime = clock()


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency returning the application state."""
    return request.app.state.fluidwatch
