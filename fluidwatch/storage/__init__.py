"""
Storage backends for the monitoring system.

Both backends implement fluidwatch.interfaces.Storage; callers never need
to know which one is in use.

Components:
    postgres_client: PostgreSQL backend, transactional minimum-interval gate
    redis_client: Redis backend, deterministic time-bucket dedup

Example:
    >>> from fluidwatch.storage import create_storage
    >>> storage = create_storage(config)
    >>> await storage.connect()
"""

from fluidwatch.config.models import AppConfig, StorageBackend
from fluidwatch.interfaces.storage import Storage
from fluidwatch.storage.redis_client import (
    RedisStorage,
    bucket_start,
    create_redis_storage,
)
from fluidwatch.storage.postgres_client import (
    PostgresStorage,
    create_postgres_storage,
)


def create_storage(config: AppConfig) -> Storage:
    """
    Build the storage backend selected in service configuration.

    Args:
        config: Application configuration.

    Returns:
        Storage: Unconnected backend.
    """
    if config.service.storage_backend == StorageBackend.REDIS:
        return create_redis_storage(
            config.redis,
            bucket_minutes=config.measurements.dedup_bucket_minutes,
        )
    return create_postgres_storage(config.postgres)


__all__: list[str] = [
    "create_storage",
    # Redis
    "RedisStorage",
    "bucket_start",
    "create_redis_storage",
    # PostgreSQL
    "PostgresStorage",
    "create_postgres_storage",
]
