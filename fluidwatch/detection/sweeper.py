"""
Alert sweep over all active meters.

One run per invocation:

    1. Cooldown: refuse to run if the previous sweep started less than
       the cooldown ago (SweepCooldownError, nothing mutated).
    2. Advisory claim: persist the start time before doing any work.
    3. Paginate active meters by id, evaluating each with the AlertCompiler.
       Any evaluation failure aborts the sweep.
    4. Group alerting meters by owner.
    5. Send one digest per owner. A missing account aborts the sweep; a
       delivery failure is logged and the sweep moves on.

The claim is best effort: two invocations racing between the cooldown read
and the claim write can both run.

Example:
    >>> sweeper = create_alert_sweeper(storage, notifier, config.alerts)
    >>> report = await sweeper.run()
    >>> report.owners_notified
    3
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog

from fluidwatch.config.models import AlertsConfig
from fluidwatch.detection.compiler import AlertCompiler, create_alert_compiler
from fluidwatch.errors import InternalError, StorageError, SweepCooldownError
from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.interfaces.storage import Storage
from fluidwatch.models.alerts import FluidMeterAlerts, SweepReport
from fluidwatch.models.common import Clock, ensure_utc, utc_now

logger = structlog.get_logger(__name__)

LAST_ALERTS_RUN_KEY = "last-alerts-run"
DEFAULT_SWEEP_COOLDOWN = timedelta(minutes=20)
DEFAULT_METERS_PAGE_SIZE = 100


class AlertSweeper:
    """
    Runs alert sweeps.

    Attributes:
        storage: Storage backend for meters, run metadata and accounts.
        compiler: Per-meter alert compiler.
        notifier: Digest delivery.
        cooldown: Minimum spacing between two sweeps.
        page_size: Active meters fetched per page.
    """

    def __init__(
        self,
        storage: Storage,
        compiler: AlertCompiler,
        notifier: Notifier,
        cooldown: timedelta = DEFAULT_SWEEP_COOLDOWN,
        page_size: int = DEFAULT_METERS_PAGE_SIZE,
        clock: Clock = utc_now,
    ) -> None:
        self.storage = storage
        self.compiler = compiler
        self.notifier = notifier
        self.cooldown = cooldown
        self.page_size = page_size
        self._clock = clock

    async def run(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Execute one sweep.

        Args:
            now: Sweep time. Defaults to the injected clock.

        Returns:
            SweepReport: Counters for the run.

        Raises:
            SweepCooldownError: If the previous sweep is inside the cooldown.
            InternalError: On storage failure or a meter whose owner has no account.
        """
        now = ensure_utc(now) if now is not None else self._clock()

        await self._check_cooldown(now)
        await self._claim(now)

        report = SweepReport(started_at=now)
        logger.info("alert_sweep_started", started_at=now.isoformat())

        by_owner = await self._collect(now, report)
        await self._notify(by_owner, report)

        report.finished_at = self._clock()
        logger.info(
            "alert_sweep_completed",
            pages=report.pages,
            meters_evaluated=report.meters_evaluated,
            meters_alerting=report.meters_alerting,
            owners_notified=report.owners_notified,
            notification_failures=report.notification_failures,
        )
        return report

    async def _check_cooldown(self, now: datetime) -> None:
        try:
            last_run = await self.storage.get_metadata(LAST_ALERTS_RUN_KEY)
        except StorageError as e:
            logger.error("alert_sweep_metadata_read_failed", error=str(e))
            raise InternalError("Failed to read last sweep time") from e

        if last_run is None:
            return

        try:
            last = ensure_utc(datetime.fromisoformat(last_run.value))
        except ValueError:
            logger.warning(
                "alert_sweep_last_run_unparseable",
                value=last_run.value,
            )
            return

        if now - last < self.cooldown:
            logger.warning(
                "alert_sweep_rate_limited",
                last_run=last_run.value,
                cooldown_seconds=self.cooldown.total_seconds(),
            )
            raise SweepCooldownError(last_run.value)

    async def _claim(self, now: datetime) -> None:
        try:
            await self.storage.save_metadata(LAST_ALERTS_RUN_KEY, now.isoformat())
        except StorageError as e:
            logger.error("alert_sweep_claim_failed", error=str(e))
            raise InternalError("Failed to record sweep start") from e

    async def _collect(
        self,
        now: datetime,
        report: SweepReport,
    ) -> Dict[str, List[FluidMeterAlerts]]:
        """Page through active meters and group alerting ones by owner."""
        by_owner: Dict[str, List[FluidMeterAlerts]] = {}
        cursor: Optional[str] = None

        while True:
            try:
                meters = await self.storage.get_active_fluid_meters(
                    cursor, self.page_size
                )
            except StorageError as e:
                logger.error(
                    "alert_sweep_page_failed",
                    page_cursor=cursor,
                    error=str(e),
                )
                raise InternalError("Failed to list active meters") from e

            if not meters:
                break

            report.pages += 1
            cursor = meters[-1].id

            for meter in meters:
                meter_alerts = await self.compiler.get_alerts(meter, now)
                report.meters_evaluated += 1
                if meter_alerts.has_alerts:
                    report.meters_alerting += 1
                    by_owner.setdefault(meter.owner_id, []).append(meter_alerts)

            logger.debug(
                "alert_sweep_page_processed",
                page=report.pages,
                meters=len(meters),
                page_cursor=cursor,
            )

        return by_owner

    async def _notify(
        self,
        by_owner: Dict[str, List[FluidMeterAlerts]],
        report: SweepReport,
    ) -> None:
        for owner_id, meter_alerts in by_owner.items():
            try:
                account = await self.storage.account_by_id(owner_id)
            except StorageError as e:
                logger.error(
                    "alert_sweep_account_lookup_failed",
                    owner_id=owner_id,
                    error=str(e),
                )
                raise InternalError(f"Failed to look up account {owner_id}") from e

            if account is None:
                logger.error(
                    "alert_sweep_account_missing",
                    owner_id=owner_id,
                    meters=[m.meter.id for m in meter_alerts],
                )
                raise InternalError(
                    f"Meter assigned to account {owner_id}, but account not found"
                )

            try:
                await self.notifier.send_digest(account, meter_alerts)
                report.owners_notified += 1
            except Exception as e:
                report.notification_failures += 1
                logger.error(
                    "alert_digest_failed",
                    owner_id=owner_id,
                    notifier=self.notifier.name,
                    meters=len(meter_alerts),
                    error=str(e),
                )


def create_alert_sweeper(
    storage: Storage,
    notifier: Notifier,
    config: Optional[AlertsConfig] = None,
    clock: Clock = utc_now,
) -> AlertSweeper:
    """
    Factory function to create an AlertSweeper.

    Args:
        storage: Storage backend.
        notifier: Digest delivery.
        config: Alert configuration. Defaults to AlertsConfig().
        clock: Source of the current time.

    Returns:
        AlertSweeper: Configured sweeper.
    """
    config = config or AlertsConfig()
    return AlertSweeper(
        storage=storage,
        compiler=create_alert_compiler(storage, config),
        notifier=notifier,
        cooldown=config.sweep_cooldown,
        page_size=config.meters_page_size,
        clock=clock,
    )
