"""
E-mail notifier backed by a transactional mail HTTP API (Brevo).

Sends one HTML e-mail per digest. Non-2xx responses, client errors and
timeouts are raised as NotificationError so the sweep can log them and
carry on with the next owner.

Example:
    >>> notifier = EmailNotifier(MailConfig(api_key="xkeysib-..."))
    >>> await notifier.send_digest(account, meter_alerts)
    >>> await notifier.close()
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from fluidwatch.config.models import MailConfig
from fluidwatch.errors import NotificationError
from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.models.alerts import FluidMeterAlerts
from fluidwatch.models.meter import Account
from fluidwatch.notifiers.digest import DIGEST_SUBJECT, render_html

logger = structlog.get_logger(__name__)


class EmailNotifier(Notifier):
    """
    Delivers digests through a mail provider's HTTP API.

    Attributes:
        config: Sender, endpoint and API key.
    """

    def __init__(
        self,
        config: MailConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """
        Initialize the e-mail notifier.

        Args:
            config: Mail configuration. api_key must be set.
            session: Optional shared session; created lazily otherwise.

        Raises:
            ValueError: If no API key is configured.
        """
        if not config.api_key:
            raise ValueError("EmailNotifier requires mail.api_key")
        self.config = config
        self._session = session
        self._owns_session = session is None

        logger.info(
            "email_notifier_initialized",
            api_url=config.api_url,
            mailer_address=config.mailer_address,
        )

    @property
    def name(self) -> str:
        return "email"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={
                    "accept": "application/json",
                    "content-type": "application/json",
                    "api-key": self.config.api_key or "",
                },
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            logger.debug("email_notifier_session_closed")

    def _payload(self, account: Account, meter_alerts: List[FluidMeterAlerts]) -> Dict[str, Any]:
        return {
            "sender": {
                "name": self.config.mailer_name,
                "email": self.config.mailer_address,
            },
            "to": [{"name": account.name, "email": account.email}],
            "subject": DIGEST_SUBJECT,
            "htmlContent": render_html(account, meter_alerts),
        }

    async def send_digest(
        self,
        account: Account,
        meter_alerts: List[FluidMeterAlerts],
    ) -> None:
        """
        Send the digest e-mail.

        Raises:
            NotificationError: On a non-2xx response, client error or timeout.
        """
        session = await self._ensure_session()
        payload = self._payload(account, meter_alerts)

        try:
            async with session.post(self.config.api_url, json=payload) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    logger.error(
                        "digest_email_rejected",
                        account_id=account.id,
                        status=response.status,
                        error=error_text,
                    )
                    raise NotificationError(
                        f"Mail provider responded with status {response.status}"
                    )

        except aiohttp.ClientError as e:
            logger.error("digest_email_client_error", account_id=account.id, error=str(e))
            raise NotificationError(f"Mail request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(
                "digest_email_timeout",
                account_id=account.id,
                timeout=self.config.timeout_seconds,
            )
            raise NotificationError(
                f"Mail request timeout after {self.config.timeout_seconds}s"
            ) from e

        logger.info(
            "digest_email_sent",
            account_id=account.id,
            meters=len(meter_alerts),
        )


def create_email_notifier(config: MailConfig) -> EmailNotifier:
    """Factory function to create an EmailNotifier."""
    return EmailNotifier(config)
