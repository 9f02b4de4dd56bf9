"""
Abstract base class for storage backends.

This module defines the Storage interface consumed by the ingestion path,
the alert compiler and the sweep. Two production implementations exist:

    - PostgresStorage: transactional minimum-interval gate
    - RedisStorage: deterministic-id idempotent upsert

Both satisfy the same invariant: no two measurements for one meter are
stored closer together than the backend's window, and the caller either
gets the accepted row, the already stored row, or a RateLimitedError.
Callers never need to know which backend is in use.

Example:
    >>> class MyStorage(Storage):
    ...     @property
    ...     def write_strategy(self) -> WriteStrategy:
    ...         return WriteStrategy.MIN_INTERVAL
    ...     # ... implement other abstract methods
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from fluidwatch.models.common import Metadata
from fluidwatch.models.measurement import Measurement
from fluidwatch.models.meter import Account, FluidMeter


class WriteStrategy(str, Enum):
    """
    How a backend keeps measurements for one meter apart.

    Attributes:
        MIN_INTERVAL: Reject writes inside the rate window (RateLimitedError).
        TIME_BUCKET: Return the stored row for writes landing in the same bucket.
    """

    MIN_INTERVAL = "min_interval"
    TIME_BUCKET = "time_bucket"


class Storage(ABC):
    """
    Persistence contract for meters, measurements, run metadata and accounts.

    Implementations raise StorageConnectionError when the engine is
    unreachable and StorageOperationError when a query fails. Returning None
    or an empty list is reserved for "not found".
    """

    @property
    @abstractmethod
    def write_strategy(self) -> WriteStrategy:
        """Return the strategy used by save_measurement."""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """Open connections. Calling it twice is a no-op."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release connections. Safe to call multiple times."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the engine answers."""
        pass

    async def prepare(self) -> None:
        """
        Create whatever the backend needs before serving, if missing.

        Called once after connect(). Backends without a schema keep this
        no-op.
        """

    # =========================================================================
    # FLUID METERS
    # =========================================================================

    @abstractmethod
    async def get_fluid_meter(self, meter_id: str) -> Optional[FluidMeter]:
        """
        Look up a meter by id.

        Deleted meters are returned too; callers decide what a deleted
        meter means for them.

        Args:
            meter_id: Meter identifier.

        Returns:
            Optional[FluidMeter]: The meter, or None if unknown.
        """
        pass

    @abstractmethod
    async def get_active_fluid_meters(
        self,
        page_cursor: Optional[str],
        page_size: int,
    ) -> List[FluidMeter]:
        """
        Return one page of active meters ordered by id ascending.

        Args:
            page_cursor: Id of the last meter of the previous page, or None
                for the first page. Only meters with a greater id are returned.
            page_size: Maximum number of meters in the page.

        Returns:
            List[FluidMeter]: The page. Empty once all meters were returned.
        """
        pass

    @abstractmethod
    async def insert_fluid_meter(self, meter: FluidMeter) -> None:
        """Persist a new meter."""
        pass

    # =========================================================================
    # MEASUREMENTS
    # =========================================================================

    @abstractmethod
    async def save_measurement(
        self,
        measurement: Measurement,
        rate_window: timedelta,
    ) -> Measurement:
        """
        Store a measurement and bump the meter's updated_at.

        Args:
            measurement: The measurement to store.
            rate_window: Minimum spacing to the previous measurement. Only
                used by MIN_INTERVAL backends.

        Returns:
            Measurement: The stored row. TIME_BUCKET backends return the row
                already stored for the same bucket on a duplicate.

        Raises:
            RateLimitedError: MIN_INTERVAL backends, when the previous
                measurement is inside the rate window.
        """
        pass

    @abstractmethod
    async def get_measurements(
        self,
        meter_id: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> List[Measurement]:
        """
        Return measurements with start <= recorded_at <= end, newest first.

        Args:
            meter_id: Meter identifier.
            start: Lower bound (inclusive).
            end: Upper bound (inclusive).
            limit: Maximum number of rows.

        Returns:
            List[Measurement]: Possibly empty, never None.
        """
        pass

    # =========================================================================
    # METADATA
    # =========================================================================

    @abstractmethod
    async def get_metadata(self, key: str) -> Optional[Metadata]:
        """Return the metadata row for key, or None."""
        pass

    @abstractmethod
    async def save_metadata(self, key: str, value: str) -> None:
        """Create or replace the metadata row for key."""
        pass

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    @abstractmethod
    async def account_by_id(self, account_id: str) -> Optional[Account]:
        """Return the account, or None if unknown."""
        pass

    @abstractmethod
    async def insert_account(self, account: Account) -> None:
        """Persist an account. Used for seeding; accounts are managed elsewhere."""
        pass
