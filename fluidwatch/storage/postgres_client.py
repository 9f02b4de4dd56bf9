"""
Async PostgreSQL storage backend.

This module implements the Storage interface on PostgreSQL using an asyncpg
connection pool. Measurement writes use the minimum-interval gate: in one
transaction the meter row is locked, the newest measurement is read, and
the insert is refused with RateLimitedError when it falls inside the rate
window. The lock serializes concurrent writers for the same meter.

Key Tables:
    - account: Meter owners (read-only here, seeded for tests)
    - fluid_meter: Registered meters with status and liveness timestamp
    - measurement: Readings, indexed by (meter_id, recorded_at)
    - metadata: Key/value run state (e.g. last-alerts-run)

Example:
    >>> from fluidwatch.config.models import PostgresConnectionConfig
    >>> from fluidwatch.storage.postgres_client import PostgresStorage
    >>>
    >>> storage = PostgresStorage(
    ...     PostgresConnectionConfig(url="postgresql://fluidwatch:pw@localhost/fluidwatch")
    ... )
    >>> await storage.connect()
    >>> await storage.create_schema()
    >>> meter = await storage.get_fluid_meter("meter-1")
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, List, Optional

import structlog

try:
    import asyncpg
    from asyncpg import Connection, Pool, Record
    from asyncpg.exceptions import (
        PostgresError,
        InterfaceError,
        ConnectionDoesNotExistError,
        TooManyConnectionsError,
    )
except ImportError as e:
    raise ImportError(
        "asyncpg is required for PostgresStorage. Install with: pip install asyncpg"
    ) from e

from fluidwatch.config.models import PostgresConnectionConfig
from fluidwatch.errors import (
    RateLimitedError,
    StorageConnectionError,
    StorageOperationError,
)
from fluidwatch.interfaces.storage import Storage, WriteStrategy
from fluidwatch.models.common import Metadata
from fluidwatch.models.measurement import Measurement
from fluidwatch.models.meter import Account, FluidMeter, FluidMeterStatus

logger = structlog.get_logger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS account (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS fluid_meter (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL REFERENCES account (id),
    name TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('active', 'inactive', 'deleted')),
    recorded_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS fluid_meter_owner_idx ON fluid_meter (owner_id);

CREATE TABLE IF NOT EXISTS measurement (
    id TEXT PRIMARY KEY,
    meter_id TEXT NOT NULL REFERENCES fluid_meter (id),
    value TEXT NOT NULL,
    recorded_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS measurement_meter_recorded_idx
    ON measurement (meter_id, recorded_at DESC);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def _record_to_meter(record: Record) -> FluidMeter:
    return FluidMeter(
        id=record["id"],
        owner_id=record["owner_id"],
        name=record["name"],
        status=FluidMeterStatus(record["status"]),
        recorded_at=record["recorded_at"],
        updated_at=record["updated_at"],
    )


def _record_to_measurement(record: Record) -> Measurement:
    return Measurement(
        id=record["id"],
        meter_id=record["meter_id"],
        value=record["value"],
        recorded_at=record["recorded_at"],
    )


class PostgresStorage(Storage):
    """
    PostgreSQL implementation of the Storage interface.

    Attributes:
        config: PostgreSQL connection configuration.
        _pool: Connection pool for efficient connection reuse.
        _connected: Whether the client is connected.

    Example:
        >>> storage = PostgresStorage(PostgresConnectionConfig(url="postgresql://..."))
        >>> await storage.connect()
        >>> try:
        ...     await storage.save_measurement(measurement, timedelta(minutes=10))
        ... finally:
        ...     await storage.disconnect()
    """

    # Maximum retries for transient errors
    MAX_RETRIES = 3

    # Retry delay in seconds
    RETRY_DELAY = 0.5

    def __init__(self, config: PostgresConnectionConfig) -> None:
        """
        Initialize the PostgreSQL storage.

        Args:
            config: PostgreSQL connection configuration containing URL and pool settings.
        """
        self.config = config
        self._pool: Optional[Pool] = None
        self._connected: bool = False

        logger.info(
            "postgres_storage_initialized",
            url=self._sanitize_url(config.url),
            pool_size=config.pool_size,
        )

    def _sanitize_url(self, url: str) -> str:
        """Sanitize URL for logging (remove password)."""
        if "@" in url:
            parts = url.split("@")
            if ":" in parts[0]:
                user_part = parts[0].rsplit(":", 1)[0]
                return f"{user_part}:***@{parts[1]}"
        return url

    @property
    def write_strategy(self) -> WriteStrategy:
        return WriteStrategy.MIN_INTERVAL

    @property
    def is_connected(self) -> bool:
        """
        Check if the client is connected to PostgreSQL.

        Returns:
            bool: True if connected, False otherwise.
        """
        return self._connected and self._pool is not None

    async def connect(self) -> None:
        """
        Establish connection pool to PostgreSQL.

        Raises:
            StorageConnectionError: If connection fails.
        """
        if self._connected:
            logger.warning("postgres_already_connected")
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.url,
                min_size=1,
                max_size=self.config.pool_size + self.config.max_overflow,
                command_timeout=self.config.pool_timeout,
                init=self._init_connection,
            )

            # Verify connection with a simple query
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")

            self._connected = True

            logger.info(
                "postgres_connected",
                url=self._sanitize_url(self.config.url),
            )

        except (PostgresError, OSError, asyncio.TimeoutError) as e:
            self._connected = False
            logger.error(
                "postgres_connection_failed",
                url=self._sanitize_url(self.config.url),
                error=str(e),
            )
            raise StorageConnectionError(
                f"Failed to connect to PostgreSQL: {e}"
            ) from e

    async def _init_connection(self, conn: Connection) -> None:
        # Timestamps are compared and returned in UTC
        await conn.execute("SET timezone = 'UTC'")

    async def disconnect(self) -> None:
        """
        Close PostgreSQL connection pool and release resources.

        Safe to call multiple times.
        """
        if self._pool is not None:
            try:
                await self._pool.close()
            except (PostgresError, OSError) as e:
                logger.warning("postgres_close_error", error=str(e))
            finally:
                self._pool = None

        self._connected = False
        logger.info("postgres_disconnected")

    async def ping(self) -> bool:
        """
        Check PostgreSQL connection health.

        Returns:
            bool: True if PostgreSQL responds, False otherwise.
        """
        if not self._pool:
            return False

        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (PostgresError, InterfaceError, OSError, asyncio.TimeoutError) as e:
            logger.warning("postgres_ping_failed", error=str(e))
            return False

    @asynccontextmanager
    async def _acquire_connection(self) -> AsyncIterator[Connection]:
        """
        Acquire a connection from the pool with error handling.

        Yields:
            Connection: asyncpg connection from the pool.

        Raises:
            StorageConnectionError: If not connected or pool exhausted.
        """
        if not self._connected or self._pool is None:
            raise StorageConnectionError("PostgreSQL storage is not connected")

        try:
            async with self._pool.acquire() as conn:
                yield conn
        except TooManyConnectionsError as e:
            logger.error("postgres_pool_exhausted", error=str(e))
            raise StorageConnectionError(
                f"Connection pool exhausted: {e}"
            ) from e
        except (ConnectionDoesNotExistError, InterfaceError) as e:
            logger.error("postgres_connection_lost", error=str(e))
            self._connected = False
            raise StorageConnectionError(
                f"Connection lost: {e}"
            ) from e

    async def _execute_with_retry(
        self,
        operation: str,
        func: Any,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """
        Execute a database operation with retry logic for transient errors.

        Args:
            operation: Name of the operation for logging.
            func: Async function to execute.
            *args: Positional arguments for the function.
            **kwargs: Keyword arguments for the function.

        Returns:
            Any: Result of the function call.

        Raises:
            StorageOperationError: If all retries fail.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.MAX_RETRIES):
            try:
                return await func(*args, **kwargs)
            except (PostgresError, ConnectionDoesNotExistError, InterfaceError) as e:
                last_error = e
                if attempt < self.MAX_RETRIES - 1:
                    logger.warning(
                        "postgres_operation_retry",
                        operation=operation,
                        attempt=attempt + 1,
                        max_retries=self.MAX_RETRIES,
                        error=str(e),
                    )
                    await asyncio.sleep(self.RETRY_DELAY * (attempt + 1))
                else:
                    logger.error(
                        "postgres_operation_failed",
                        operation=operation,
                        error=str(e),
                    )

        raise StorageOperationError(
            f"Operation '{operation}' failed after {self.MAX_RETRIES} attempts: {last_error}"
        )

    async def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""

        async def _create() -> None:
            async with self._acquire_connection() as conn:
                await conn.execute(SCHEMA)

        await self._execute_with_retry("create_schema", _create)
        logger.info("postgres_schema_ready")

    async def prepare(self) -> None:
        """Create the schema so a fresh database can serve requests."""
        await self.create_schema()

    # =========================================================================
    # FLUID METERS
    # =========================================================================

    async def get_fluid_meter(self, meter_id: str) -> Optional[FluidMeter]:
        async def _query() -> Optional[Record]:
            async with self._acquire_connection() as conn:
                return await conn.fetchrow(
                    """
                    SELECT id, owner_id, name, status, recorded_at, updated_at
                    FROM fluid_meter
                    WHERE id = $1
                    """,
                    meter_id,
                )

        record = await self._execute_with_retry("get_fluid_meter", _query)
        return _record_to_meter(record) if record is not None else None

    async def get_active_fluid_meters(
        self,
        page_cursor: Optional[str],
        page_size: int,
    ) -> List[FluidMeter]:
        """
        Return one page of active meters ordered by id.

        Args:
            page_cursor: Last id of the previous page, or None.
            page_size: Maximum meters in the page.

        Returns:
            List[FluidMeter]: Empty once exhausted.
        """

        async def _query() -> List[Record]:
            async with self._acquire_connection() as conn:
                if page_cursor is None:
                    return await conn.fetch(
                        """
                        SELECT id, owner_id, name, status, recorded_at, updated_at
                        FROM fluid_meter
                        WHERE status = 'active'
                        ORDER BY id ASC
                        LIMIT $1
                        """,
                        page_size,
                    )
                return await conn.fetch(
                    """
                    SELECT id, owner_id, name, status, recorded_at, updated_at
                    FROM fluid_meter
                    WHERE status = 'active' AND id > $1
                    ORDER BY id ASC
                    LIMIT $2
                    """,
                    page_cursor,
                    page_size,
                )

        records = await self._execute_with_retry("get_active_fluid_meters", _query)
        return [_record_to_meter(r) for r in records]

    async def insert_fluid_meter(self, meter: FluidMeter) -> None:
        async def _insert() -> None:
            async with self._acquire_connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO fluid_meter (id, owner_id, name, status, recorded_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    meter.id,
                    meter.owner_id,
                    meter.name,
                    meter.status.value,
                    meter.recorded_at,
                    meter.updated_at,
                )

        await self._execute_with_retry("insert_fluid_meter", _insert)
        logger.info("fluid_meter_inserted", meter_id=meter.id, owner_id=meter.owner_id)

    # =========================================================================
    # MEASUREMENTS
    # =========================================================================

    async def save_measurement(
        self,
        measurement: Measurement,
        rate_window: timedelta,
    ) -> Measurement:
        """
        Insert a measurement unless the previous one is inside the rate window.

        The meter row is locked with SELECT ... FOR UPDATE for the duration of
        the transaction, so concurrent writers for the same meter are
        serialized and cannot both pass the gate.

        Args:
            measurement: The measurement to store.
            rate_window: Minimum spacing to the previous measurement.

        Returns:
            Measurement: The inserted measurement.

        Raises:
            RateLimitedError: If the previous measurement is too recent.
            StorageOperationError: If the meter vanished or the query fails.
        """
        start_time = time.monotonic()

        async def _save() -> None:
            async with self._acquire_connection() as conn:
                async with conn.transaction():
                    locked = await conn.fetchval(
                        "SELECT id FROM fluid_meter WHERE id = $1 FOR UPDATE",
                        measurement.meter_id,
                    )
                    if locked is None:
                        raise StorageOperationError(
                            f"Fluid meter {measurement.meter_id} not found"
                        )

                    last_recorded_at: Optional[datetime] = await conn.fetchval(
                        """
                        SELECT recorded_at
                        FROM measurement
                        WHERE meter_id = $1
                        ORDER BY recorded_at DESC
                        LIMIT 1
                        """,
                        measurement.meter_id,
                    )
                    if (
                        last_recorded_at is not None
                        and measurement.recorded_at - last_recorded_at < rate_window
                    ):
                        raise RateLimitedError(measurement.meter_id)

                    await conn.execute(
                        """
                        INSERT INTO measurement (id, meter_id, value, recorded_at)
                        VALUES ($1, $2, $3, $4)
                        """,
                        measurement.id,
                        measurement.meter_id,
                        measurement.value,
                        measurement.recorded_at,
                    )
                    await conn.execute(
                        "UPDATE fluid_meter SET updated_at = $2 WHERE id = $1",
                        measurement.meter_id,
                        measurement.recorded_at,
                    )

        await self._execute_with_retry("save_measurement", _save)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            "measurement_inserted",
            meter_id=measurement.meter_id,
            measurement_id=measurement.id,
            elapsed_ms=round(elapsed_ms, 2),
        )
        return measurement

    async def get_measurements(
        self,
        meter_id: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> List[Measurement]:
        async def _query() -> List[Record]:
            async with self._acquire_connection() as conn:
                return await conn.fetch(
                    """
                    SELECT id, meter_id, value, recorded_at
                    FROM measurement
                    WHERE meter_id = $1
                      AND recorded_at >= $2
                      AND recorded_at <= $3
                    ORDER BY recorded_at DESC
                    LIMIT $4
                    """,
                    meter_id,
                    start,
                    end,
                    limit,
                )

        records = await self._execute_with_retry("get_measurements", _query)
        return [_record_to_measurement(r) for r in records]

    # =========================================================================
    # METADATA
    # =========================================================================

    async def get_metadata(self, key: str) -> Optional[Metadata]:
        async def _query() -> Optional[Record]:
            async with self._acquire_connection() as conn:
                return await conn.fetchrow(
                    "SELECT key, value FROM metadata WHERE key = $1",
                    key,
                )

        record = await self._execute_with_retry("get_metadata", _query)
        if record is None:
            return None
        return Metadata(key=record["key"], value=record["value"])

    async def save_metadata(self, key: str, value: str) -> None:
        async def _upsert() -> None:
            async with self._acquire_connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO metadata (key, value)
                    VALUES ($1, $2)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                    """,
                    key,
                    value,
                )

        await self._execute_with_retry("save_metadata", _upsert)
        logger.debug("metadata_saved", key=key)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def account_by_id(self, account_id: str) -> Optional[Account]:
        async def _query() -> Optional[Record]:
            async with self._acquire_connection() as conn:
                return await conn.fetchrow(
                    "SELECT id, name, email FROM account WHERE id = $1",
                    account_id,
                )

        record = await self._execute_with_retry("account_by_id", _query)
        if record is None:
            return None
        return Account(id=record["id"], name=record["name"], email=record["email"])

    async def insert_account(self, account: Account) -> None:
        async def _insert() -> None:
            async with self._acquire_connection() as conn:
                await conn.execute(
                    "INSERT INTO account (id, name, email) VALUES ($1, $2, $3)",
                    account.id,
                    account.name,
                    account.email,
                )

        await self._execute_with_retry("insert_account", _insert)


def create_postgres_storage(config: PostgresConnectionConfig) -> PostgresStorage:
    """
    Factory function to create a PostgresStorage.

    Args:
        config: PostgreSQL connection configuration.

    Returns:
        PostgresStorage: Unconnected storage; call connect() before use.
    """
    return PostgresStorage(config)
