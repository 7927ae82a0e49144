"""Periodic refresh scheduler.

Refreshes rates when no last-update marker exists or when more than one
interval has elapsed since it. The check runs once on start and then each
time the next refresh falls due. Time comes from an injected Clock, so the
due logic is testable without sleeping.
"""

import asyncio

from metaltracker.clock import MS_PER_SECOND, Clock, SystemClock
from metaltracker.logging import get_logger
from metaltracker.models import AcquisitionResult
from metaltracker.service import RateService

logger = get_logger(__name__)

DEFAULT_INTERVAL_MS = 3_600_000

#: Lower bound on the loop's sleep so a marker in the future cannot spin it.
_MIN_SLEEP_SECONDS = 1.0


class RefreshScheduler:
    """Runs RateService.acquire_and_persist() whenever a refresh is due.

    Args:
        service: The rate service to refresh.
        clock: Time source compared against the last-update marker.
        interval_ms: Minimum age of the marker before a refresh is due.
    """

    def __init__(
        self,
        service: RateService,
        clock: Clock | None = None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ) -> None:
        self._service = service
        self._clock = clock or SystemClock()
        self._interval_ms = interval_ms
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def running(self) -> bool:
        return self._running

    async def next_due_ms(self) -> int | None:
        """Unix ms at which the next refresh falls due; None means due now."""
        last_update = await self._service.last_update()
        if last_update is None:
            return None
        return last_update + self._interval_ms

    async def is_due(self) -> bool:
        due_at = await self.next_due_ms()
        return due_at is None or self._clock.now_ms() > due_at

    async def tick(self) -> AcquisitionResult | None:
        """Refresh if due. Returns the refresh result, or None if skipped."""
        if not await self.is_due():
            logger.debug("refresh_not_due")
            return None
        return await self._service.acquire_and_persist()

    async def start(self) -> None:
        """Begin the refresh loop in the background."""
        if self._running:
            logger.warning("refresh_scheduler_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("refresh_scheduler_started", interval_ms=self._interval_ms)

    async def stop(self) -> None:
        """Stop the refresh loop; an in-flight refresh is left to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("refresh_scheduler_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.tick()
                delay = await self._seconds_until_due()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("refresh_cycle_error", exc_info=True)
                delay = self._interval_ms / MS_PER_SECOND
            if self._running:
                await asyncio.sleep(delay)

    async def _seconds_until_due(self) -> float:
        due_at = await self.next_due_ms()
        if due_at is None:
            return _MIN_SLEEP_SECONDS
        remaining_ms = due_at - self._clock.now_ms()
        # Strictly "more than one interval": wake just after the boundary.
        delay = remaining_ms / MS_PER_SECOND + _MIN_SLEEP_SECONDS
        return min(max(_MIN_SLEEP_SECONDS, delay), self._interval_ms / MS_PER_SECOND)
