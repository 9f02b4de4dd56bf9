"""
Configuration for FluidWatch.

Settings live in three YAML files (measurements.yaml, alerts.yaml,
service.yaml) and are validated into frozen pydantic models. Connection
URLs, the storage backend, the mail API key and the log level can be set
from the environment; see fluidwatch.config.loader for the list.

Example:
    >>> from fluidwatch.config import load_config
    >>> config = load_config()
    >>> config.alerts.constant_flow_threshold
    5
"""

from fluidwatch.config.loader import ConfigLoadError, ConfigLoader, load_config
from fluidwatch.config.models import (
    # Enums
    LogFormat,
    LogLevel,
    NotifierKind,
    StorageBackend,
    # Measurement config
    MeasurementsConfig,
    SeriesConfig,
    # Alert config
    AlertsConfig,
    # Service config
    ApiConfig,
    LoggingConfig,
    MailConfig,
    NotifierConfig,
    ServiceConfig,
    # Connection config
    PostgresConnectionConfig,
    RedisConnectionConfig,
    # Root config
    AppConfig,
)

__all__: list[str] = [
    # Loader
    "load_config",
    "ConfigLoader",
    "ConfigLoadError",
    # Enums
    "LogFormat",
    "LogLevel",
    "NotifierKind",
    "StorageBackend",
    # Measurement config
    "MeasurementsConfig",
    "SeriesConfig",
    # Alert config
    "AlertsConfig",
    # Service config
    "ApiConfig",
    "LoggingConfig",
    "MailConfig",
    "NotifierConfig",
    "ServiceConfig",
    # Connection config
    "RedisConnectionConfig",
    "PostgresConnectionConfig",
    # Root config
    "AppConfig",
]
