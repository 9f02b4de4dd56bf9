"""
Abstract base class for digest notifiers.

A notifier delivers one digest to one account owner, listing every meter
of that owner that raised an alert during a sweep.
"""

from abc import ABC, abstractmethod
from typing import List

from fluidwatch.models.alerts import FluidMeterAlerts
from fluidwatch.models.meter import Account


class Notifier(ABC):
    """
    Contract for digest delivery.

    Implementations raise NotificationError (or any transport error) when
    delivery fails. The sweep logs the failure and moves on to the next
    owner.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs (e.g. "console", "email")."""
        pass

    @abstractmethod
    async def send_digest(
        self,
        account: Account,
        meter_alerts: List[FluidMeterAlerts],
    ) -> None:
        """
        Send a digest to an account owner.

        Args:
            account: Recipient.
            meter_alerts: The owner's alerting meters, each with at least one alert.

        Raises:
            NotificationError: If the digest could not be delivered.
        """
        pass

    async def close(self) -> None:
        """Release transport resources. No-op by default."""
        return None
