"""
Async Redis storage backend.

This module implements the Storage interface on Redis. Redis has no
multi-key read-then-write transactions across arbitrary keys, so
measurement writes use deterministic-id deduplication: each measurement is
keyed by its meter and its recorded_at floored to an even time bucket
(2 minutes by default) and written with SET NX. A second write into the
same bucket does not fail; it returns the row already stored.

Key Patterns:
    - Meters: `meter:{id}` (hash), `meters:active` (sorted set, lex ordered ids)
    - Measurements: `measurement:{meter_id}:{YYYY-mm-ddTHH:MM}` (JSON string),
      `measurements:{meter_id}` (sorted set scored by recorded_at)
    - Metadata: `metadata:{key}` (string)
    - Accounts: `account:{id}` (hash)

Note:
    Timestamps are stored as ISO-8601 UTC strings.

Example:
    >>> from fluidwatch.config.models import RedisConnectionConfig
    >>> from fluidwatch.storage.redis_client import RedisStorage
    >>>
    >>> storage = RedisStorage(RedisConnectionConfig(url="redis://localhost:6379"))
    >>> await storage.connect()
    >>> stored = await storage.save_measurement(measurement, timedelta(minutes=10))
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from fluidwatch.config.models import RedisConnectionConfig
from fluidwatch.errors import StorageConnectionError, StorageOperationError
from fluidwatch.interfaces.storage import Storage, WriteStrategy
from fluidwatch.models.common import Metadata
from fluidwatch.models.measurement import Measurement
from fluidwatch.models.meter import Account, FluidMeter

logger = structlog.get_logger(__name__)

DEFAULT_BUCKET_MINUTES = 2


def bucket_start(recorded_at: datetime, bucket_minutes: int = DEFAULT_BUCKET_MINUTES) -> datetime:
    """
    Floor a timestamp to the start of its dedup bucket.

    Example:
        >>> bucket_start(datetime(2025, 3, 27, 14, 43, 59, tzinfo=timezone.utc))
        datetime.datetime(2025, 3, 27, 14, 42, tzinfo=datetime.timezone.utc)
    """
    minute = recorded_at.minute - recorded_at.minute % bucket_minutes
    return recorded_at.replace(minute=minute, second=0, microsecond=0)


def _meter_to_hash(meter: FluidMeter) -> Dict[str, str]:
    return {
        "id": meter.id,
        "owner_id": meter.owner_id,
        "name": meter.name,
        "status": meter.status.value,
        "recorded_at": meter.recorded_at.isoformat(),
        "updated_at": meter.updated_at.isoformat(),
    }


class RedisStorage(Storage):
    """
    Redis implementation of the Storage interface.

    Attributes:
        config: Redis connection configuration.
        bucket_minutes: Width of the measurement dedup bucket.
        _pool: Connection pool for efficient connection reuse.
        _client: Redis client instance.
        _connected: Whether the client is connected.

    Example:
        >>> storage = RedisStorage(RedisConnectionConfig(url="redis://localhost:6379"))
        >>> await storage.connect()
        >>> try:
        ...     meters = await storage.get_active_fluid_meters(None, 100)
        ... finally:
        ...     await storage.disconnect()
    """

    # Key prefixes
    KEY_METER = "meter"
    KEY_METERS_ACTIVE = "meters:active"
    KEY_MEASUREMENT = "measurement"
    KEY_MEASUREMENTS = "measurements"
    KEY_METADATA = "metadata"
    KEY_ACCOUNT = "account"

    def __init__(
        self,
        config: RedisConnectionConfig,
        bucket_minutes: int = DEFAULT_BUCKET_MINUTES,
        client: Optional[Redis] = None,  # type: ignore[type-arg]
    ) -> None:
        """
        Initialize the Redis storage.

        Args:
            config: Redis connection configuration containing URL, db, and pool settings.
            bucket_minutes: Width of the measurement dedup bucket in minutes.
            client: Pre-built client (e.g. fakeredis). When given, no pool is created.
        """
        if bucket_minutes < 1 or 60 % bucket_minutes != 0:
            raise ValueError("bucket_minutes must divide 60")
        self.config = config
        self.bucket_minutes = bucket_minutes
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client  # type: ignore[type-arg]
        self._owns_client = client is None
        self._connected: bool = False

        logger.info(
            "redis_storage_initialized",
            url=config.url,
            db=config.db,
            bucket_minutes=bucket_minutes,
        )

    @property
    def write_strategy(self) -> WriteStrategy:
        return WriteStrategy.TIME_BUCKET

    @property
    def is_connected(self) -> bool:
        """
        Check if the client is connected to Redis.

        Returns:
            bool: True if connected, False otherwise.
        """
        return self._connected and self._client is not None

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Raises:
            StorageConnectionError: If connection fails.
        """
        if self._connected:
            logger.warning("redis_already_connected")
            return

        try:
            if self._client is None:
                self._pool = ConnectionPool.from_url(
                    self.config.url,
                    db=self.config.db,
                    max_connections=self.config.max_connections,
                    socket_timeout=self.config.socket_timeout,
                    socket_connect_timeout=self.config.socket_timeout,
                    decode_responses=True,
                )
                self._client = Redis(connection_pool=self._pool)

            # Verify connection with ping
            await self._client.ping()
            self._connected = True

            logger.info(
                "redis_connected",
                url=self.config.url,
                db=self.config.db,
            )

        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self._connected = False
            logger.error(
                "redis_connection_failed",
                url=self.config.url,
                error=str(e),
            )
            raise StorageConnectionError(
                f"Failed to connect to Redis at {self.config.url}: {e}"
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis connection and release resources.

        Safe to call multiple times.
        """
        if self._client is not None and self._owns_client:
            try:
                await self._client.aclose()
            except RedisError as e:
                logger.warning("redis_close_error", error=str(e))
            finally:
                self._client = None

        if self._pool is not None:
            try:
                await self._pool.aclose()
            except RedisError as e:
                logger.warning("redis_pool_close_error", error=str(e))
            finally:
                self._pool = None

        self._connected = False
        logger.info("redis_disconnected")

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            bool: True if Redis responds to PING, False otherwise.
        """
        if not self._client:
            return False

        try:
            await self._client.ping()
            return True
        except RedisError as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    def _require_connection(self) -> Redis:  # type: ignore[type-arg]
        """
        Ensure client is connected and return the Redis instance.

        Raises:
            StorageConnectionError: If not connected.
        """
        if not self._connected or self._client is None:
            raise StorageConnectionError("Redis storage is not connected")
        return self._client

    # =========================================================================
    # KEYS
    # =========================================================================

    def _meter_key(self, meter_id: str) -> str:
        return f"{self.KEY_METER}:{meter_id}"

    def _measurement_key(self, meter_id: str, recorded_at: datetime) -> str:
        bucket = bucket_start(recorded_at, self.bucket_minutes)
        return f"{self.KEY_MEASUREMENT}:{meter_id}:{bucket:%Y-%m-%dT%H:%M}"

    def _measurements_index_key(self, meter_id: str) -> str:
        return f"{self.KEY_MEASUREMENTS}:{meter_id}"

    def _metadata_key(self, key: str) -> str:
        return f"{self.KEY_METADATA}:{key}"

    def _account_key(self, account_id: str) -> str:
        return f"{self.KEY_ACCOUNT}:{account_id}"

    # =========================================================================
    # FLUID METERS
    # =========================================================================

    async def get_fluid_meter(self, meter_id: str) -> Optional[FluidMeter]:
        client = self._require_connection()

        try:
            data = await client.hgetall(self._meter_key(meter_id))
        except RedisError as e:
            logger.error("fluid_meter_retrieve_failed", meter_id=meter_id, error=str(e))
            raise StorageOperationError(
                f"Failed to retrieve fluid meter {meter_id}: {e}"
            ) from e

        if not data:
            return None
        return FluidMeter.model_validate(data)

    async def get_active_fluid_meters(
        self,
        page_cursor: Optional[str],
        page_size: int,
    ) -> List[FluidMeter]:
        """
        Return one page of active meters ordered by id.

        Ids in `meters:active` are read in lexicographic order starting
        after the cursor. Entries whose hash no longer says active are
        dropped from the index and skipped, so a page is only empty once
        the index is exhausted.

        Args:
            page_cursor: Last id of the previous page, or None.
            page_size: Maximum meters in the page.

        Returns:
            List[FluidMeter]: Empty once exhausted.
        """
        client = self._require_connection()
        meters: List[FluidMeter] = []
        lower = "-" if page_cursor is None else f"({page_cursor}"

        try:
            while len(meters) < page_size:
                ids = await client.zrangebylex(
                    self.KEY_METERS_ACTIVE,
                    lower,
                    "+",
                    start=0,
                    num=page_size - len(meters),
                )
                if not ids:
                    break

                for meter_id in ids:
                    meter = await self.get_fluid_meter(meter_id)
                    if meter is None or not meter.is_active:
                        await client.zrem(self.KEY_METERS_ACTIVE, meter_id)
                        continue
                    meters.append(meter)

                lower = f"({ids[-1]}"

        except RedisError as e:
            logger.error(
                "active_meters_retrieve_failed",
                page_cursor=page_cursor,
                error=str(e),
            )
            raise StorageOperationError(f"Failed to list active meters: {e}") from e

        return meters

    async def insert_fluid_meter(self, meter: FluidMeter) -> None:
        client = self._require_connection()

        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.hset(self._meter_key(meter.id), mapping=_meter_to_hash(meter))
                if meter.is_active:
                    pipe.zadd(self.KEY_METERS_ACTIVE, {meter.id: 0})
                else:
                    pipe.zrem(self.KEY_METERS_ACTIVE, meter.id)
                await pipe.execute()
        except RedisError as e:
            logger.error("fluid_meter_store_failed", meter_id=meter.id, error=str(e))
            raise StorageOperationError(
                f"Failed to store fluid meter {meter.id}: {e}"
            ) from e

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
        Store a measurement under its bucket key, or echo the stored one.

        The rate window is not consulted; spacing is enforced by the bucket
        width.

        Args:
            measurement: The measurement to store.
            rate_window: Unused by this backend.

        Returns:
            Measurement: The new row, or the row already in the bucket.
        """
        client = self._require_connection()
        key = self._measurement_key(measurement.meter_id, measurement.recorded_at)

        try:
            created = await client.set(key, measurement.model_dump_json(), nx=True)

            if not created:
                existing = await client.get(key)
                if existing is None:
                    raise StorageOperationError(
                        f"Measurement bucket {key} vanished after conflict"
                    )
                logger.debug("measurement_bucket_conflict", key=key)
                return Measurement.model_validate_json(existing)

            async with client.pipeline(transaction=True) as pipe:
                pipe.zadd(
                    self._measurements_index_key(measurement.meter_id),
                    {key: measurement.recorded_at.timestamp()},
                )
                pipe.hset(
                    self._meter_key(measurement.meter_id),
                    "updated_at",
                    measurement.recorded_at.isoformat(),
                )
                await pipe.execute()

        except RedisError as e:
            logger.error(
                "measurement_store_failed",
                meter_id=measurement.meter_id,
                key=key,
                error=str(e),
            )
            raise StorageOperationError(
                f"Failed to store measurement for {measurement.meter_id}: {e}"
            ) from e

        logger.debug(
            "measurement_inserted",
            meter_id=measurement.meter_id,
            measurement_id=measurement.id,
            key=key,
        )
        return measurement

    async def get_measurements(
        self,
        meter_id: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> List[Measurement]:
        client = self._require_connection()

        try:
            keys = await client.zrevrangebyscore(
                self._measurements_index_key(meter_id),
                end.timestamp(),
                start.timestamp(),
                start=0,
                num=limit,
            )
            if not keys:
                return []
            rows = await client.mget(keys)
        except RedisError as e:
            logger.error("measurements_retrieve_failed", meter_id=meter_id, error=str(e))
            raise StorageOperationError(
                f"Failed to retrieve measurements for {meter_id}: {e}"
            ) from e

        return [Measurement.model_validate_json(row) for row in rows if row is not None]

    # =========================================================================
    # METADATA
    # =========================================================================

    async def get_metadata(self, key: str) -> Optional[Metadata]:
        client = self._require_connection()

        try:
            value = await client.get(self._metadata_key(key))
        except RedisError as e:
            logger.error("metadata_retrieve_failed", key=key, error=str(e))
            raise StorageOperationError(f"Failed to retrieve metadata {key}: {e}") from e

        if value is None:
            return None
        return Metadata(key=key, value=value)

    async def save_metadata(self, key: str, value: str) -> None:
        client = self._require_connection()

        try:
            await client.set(self._metadata_key(key), value)
        except RedisError as e:
            logger.error("metadata_store_failed", key=key, error=str(e))
            raise StorageOperationError(f"Failed to store metadata {key}: {e}") from e

        logger.debug("metadata_saved", key=key)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def account_by_id(self, account_id: str) -> Optional[Account]:
        client = self._require_connection()

        try:
            data = await client.hgetall(self._account_key(account_id))
        except RedisError as e:
            logger.error("account_retrieve_failed", account_id=account_id, error=str(e))
            raise StorageOperationError(
                f"Failed to retrieve account {account_id}: {e}"
            ) from e

        if not data:
            return None
        return Account.model_validate(data)

    async def insert_account(self, account: Account) -> None:
        client = self._require_connection()

        try:
            await client.hset(
                self._account_key(account.id),
                mapping={"id": account.id, "name": account.name, "email": account.email},
            )
        except RedisError as e:
            logger.error("account_store_failed", account_id=account.id, error=str(e))
            raise StorageOperationError(
                f"Failed to store account {account.id}: {e}"
            ) from e


def create_redis_storage(
    config: RedisConnectionConfig,
    bucket_minutes: int = DEFAULT_BUCKET_MINUTES,
) -> RedisStorage:
    """
    Factory function to create a RedisStorage.

    Args:
        config: Redis connection configuration.
        bucket_minutes: Width of the measurement dedup bucket.

    Returns:
        RedisStorage: Unconnected storage; call connect() before use.
    """
    return RedisStorage(config, bucket_minutes=bucket_minutes)
