"""
Console notifier.

Writes digests to a text stream and to the structured log. Used in
development and as the default notifier when no mail provider is set up.
"""

import sys
from typing import List, Optional, TextIO

import structlog

from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.models.alerts import FluidMeterAlerts
from fluidwatch.models.meter import Account
from fluidwatch.notifiers.digest import DIGEST_SUBJECT, render_text

logger = structlog.get_logger(__name__)


class ConsoleNotifier(Notifier):
    """
    Prints digests.

    Attributes:
        stream: Destination for the rendered digest (default: stdout).
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    @property
    def name(self) -> str:
        return "console"

    async def send_digest(
        self,
        account: Account,
        meter_alerts: List[FluidMeterAlerts],
    ) -> None:
        body = render_text(account, meter_alerts)
        self.stream.write(f"To: {account.email}\nSubject: {DIGEST_SUBJECT}\n\n{body}\n\n")
        self.stream.flush()

        logger.info(
            "digest_printed",
            account_id=account.id,
            meters=[m.meter.id for m in meter_alerts],
        )


def create_console_notifier(stream: Optional[TextIO] = None) -> ConsoleNotifier:
    """Factory function to create a ConsoleNotifier."""
    return ConsoleNotifier(stream)
