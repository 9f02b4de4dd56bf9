"""
Abstract interfaces for the monitoring system.

This module defines the abstract base classes that the core consumes.
Concrete backends and notifiers are passed into components explicitly;
nothing is looked up globally.

Example:
    >>> from fluidwatch.interfaces import Notifier
    >>> class SlackNotifier(Notifier):
    ...     @property
    ...     def name(self) -> str:
    ...         return "slack"
    ...     # ... implement send_digest

Modules:
    storage: Storage ABC and WriteStrategy
    notifier: Notifier ABC for digest delivery
"""

from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.interfaces.storage import Storage, WriteStrategy

__all__: list[str] = [
    "Notifier",
    "Storage",
    "WriteStrategy",
]
