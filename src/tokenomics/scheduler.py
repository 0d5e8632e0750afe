"""In-process daily trigger for the indexer.

Sleeps until the configured UTC time of day, runs one non-forced indexing
pass, and repeats. A failing run is logged and the loop carries on to the
next day.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from tokenomics.config import ScheduleSettings
from tokenomics.indexer import DailyIndexer
from tokenomics.logging import get_logger

logger = get_logger(__name__)

MIN_LEAD_SECONDS = 1.0


def seconds_until_next_run(now: datetime, hour: int, minute: int) -> float:
    """Seconds from ``now`` (aware, UTC) until the next hour:minute UTC.

    A target less than MIN_LEAD_SECONDS away counts as already reached, so a
    sleep that wakes a little early does not trigger a second run the same day.
    """
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if (target - now).total_seconds() < MIN_LEAD_SECONDS:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class DailyScheduler:
    """Runs DailyIndexer once a day in the background.

    Args:
        indexer: The indexer to run.
        settings: Time of day (UTC) for the daily run.
    """

    def __init__(self, indexer: DailyIndexer, settings: ScheduleSettings) -> None:
        self._indexer = indexer
        self._settings = settings
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("scheduler_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "scheduler_started",
            run_at_utc=f"{self._settings.run_hour_utc:02d}:{self._settings.run_minute_utc:02d}",
        )

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("scheduler_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            delay = seconds_until_next_run(
                datetime.now(timezone.utc),
                self._settings.run_hour_utc,
                self._settings.run_minute_utc,
            )
            logger.debug("scheduler_sleeping", seconds=round(delay))
            await asyncio.sleep(delay)
            if self._running:
                await self.run_once()

    async def run_once(self) -> None:
        try:
            outcome = await self._indexer.run(force=False)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error("scheduled_run_error", exc_info=True)
            return
        if not outcome.success:
            logger.error("scheduled_run_failed", message=outcome.message, errors=outcome.errors)
