"""Scheduler service - runs the periodic check tick.

Each tick prunes old history, selects the due set (stalest first, bounded),
then probes devices one at a time with a short pause between them. A
device's state and history are written in one short transaction right
after its own probe; alerting runs only when its status changed.

Ticks never overlap (max_instances=1). A failure anywhere in a tick is
logged and the next tick runs on schedule.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..database import async_session
from ..models import Device, HistorySample
from ..utils.db_utils import retry_on_lock, utcnow
from .alerter import AlerterService, load_alert_configs
from .checker import CheckerService, CheckResult
from .cooldown import SqlCooldownLedger
from .due_set import DueDevice, DueSetSelector

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for scheduling and running periodic device checks."""

    def __init__(
        self,
        session_factory: async_sessionmaker = async_session,
        checker: Optional[CheckerService] = None,
        alerter: Optional[AlerterService] = None,
        selector: Optional[DueSetSelector] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        pacing_seconds: Optional[float] = None,
        max_concurrent_checks: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.checker = checker or CheckerService()
        self.alerter = alerter or AlerterService(SqlCooldownLedger(session_factory))
        self.selector = selector or DueSetSelector()
        self._clock = clock
        self._sleep = sleep
        self.pacing_seconds = settings.device_pacing_seconds if pacing_seconds is None else pacing_seconds
        self.max_concurrent_checks = max_concurrent_checks or settings.max_concurrent_checks
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def start(self):
        """Start the scheduler. The first tick runs immediately."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(seconds=settings.scheduler_tick_seconds),
            id="run_tick",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        self.scheduler.start()
        self._running = True
        logger.info(
            f"Scheduler started (tick={settings.scheduler_tick_seconds}s, "
            f"batch={self.selector.batch_size}, max_concurrent={self.max_concurrent_checks})"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def run_tick(self) -> int:
        """Run one tick. Returns the number of devices checked."""
        try:
            await self._prune_history()

            async with self._session_factory() as session:
                due = await self.selector.select(session, self._clock())

            if not due:
                return 0

            logger.debug(f"Checking {len(due)} due devices")

            if self.max_concurrent_checks <= 1:
                for device in due:
                    await self._check_device(device)
                    await self._sleep(self.pacing_seconds)
            else:
                semaphore = asyncio.Semaphore(self.max_concurrent_checks)

                async def check_with_limit(device: DueDevice):
                    async with semaphore:
                        await self._check_device(device)
                        await self._sleep(self.pacing_seconds)

                await asyncio.gather(*[check_with_limit(device) for device in due])

            return len(due)
        except Exception:
            logger.exception("Error running scheduler tick")
            return 0

    async def _check_device(self, device: DueDevice):
        """Probe one device, record the outcome, and alert on a status change."""
        result = await self.checker.check(device.strategy)
        now = self._clock()

        try:
            recorded = await self._record_result(device, result, now)
        except Exception:
            # last_check is not advanced, so the device is due again next tick
            logger.exception(f"Failed to record check for device {device.id}")
            return

        if not recorded:
            return

        logger.debug(f"Device {device.name}: {device.status} -> {result.status}")

        if result.status == device.status:
            return

        try:
            async with self._session_factory() as session:
                alert_configs = await load_alert_configs(session, device.tenant_id)
            await self.alerter.dispatch(
                device,
                device.status,
                result.status,
                alert_configs,
                now=now,
                detail=result.detail,
            )
        except Exception:
            logger.exception(f"Error dispatching alert for device {device.id}")

    async def _record_result(self, device: DueDevice, result: CheckResult, now: datetime) -> bool:
        """Update the device row and append a history sample in one transaction."""
        async with self._session_factory() as session:
            updated = await session.execute(
                update(Device)
                .where(Device.id == device.id, Device.tenant_id == device.tenant_id)
                .values(status=result.status, packet_loss=result.packet_loss, last_check=now)
            )
            if updated.rowcount == 0:
                logger.info(f"Device {device.id} was removed before its result was recorded")
                await session.rollback()
                return False

            session.add(HistorySample(
                device_id=device.id,
                timestamp=now,
                status=result.status,
                packet_loss=result.packet_loss,
                latency_ms=result.latency_ms,
                detail=result.detail,
            ))
            await retry_on_lock(session.commit)
        return True

    async def _prune_history(self):
        """Delete history samples older than the retention horizon."""
        try:
            cutoff = self._clock() - timedelta(days=settings.history_retention_days)

            async with self._session_factory() as session:
                result = await session.execute(
                    delete(HistorySample).where(HistorySample.timestamp < cutoff)
                )
                await retry_on_lock(session.commit)

            if result.rowcount:
                logger.info(f"Pruned {result.rowcount} history samples older than {settings.history_retention_days} days")
        except Exception:
            logger.exception("Error pruning device history")


# Global instance
scheduler_service = SchedulerService()
