"""Rate service -- the acquire-then-persist step and the read surface.

One refresh runs the fallback chain, upserts the resulting record into the
history and writes the last-update marker. Refreshes are coalesced: while
one is in flight, further callers (the periodic timer, a manual refresh)
await the same task and get its result, so a day is never upserted twice
concurrently and providers are not hit twice.
"""

import asyncio

from metaltracker.clock import Clock, SystemClock
from metaltracker.history.store import HistoryStore
from metaltracker.logging import get_logger
from metaltracker.models import (
    SOURCE_STORED,
    AcquisitionResult,
    ChangeResult,
    HistoryEntry,
    InsufficientData,
    RateRecord,
)
from metaltracker.rates.change import change_from_history
from metaltracker.rates.fallback import FallbackChain

logger = get_logger(__name__)

FALLBACK_NOTICE = (
    "API key not configured or API limit reached. Using cached rates."
)
PERSIST_FAILED_NOTICE = (
    "Rates could not be saved to history. Showing the latest fetched rates."
)


class RateService:
    """Coordinates rate acquisition, history persistence and derived views.

    Args:
        chain: Provider fallback chain.
        history: Daily history store (also holds the last-update marker).
        clock: Time source for the last-update marker.
    """

    def __init__(
        self,
        chain: FallbackChain,
        history: HistoryStore,
        clock: Clock | None = None,
    ) -> None:
        self._chain = chain
        self._history = history
        self._clock = clock or SystemClock()
        self._inflight: asyncio.Task[AcquisitionResult] | None = None
        self._last_result: AcquisitionResult | None = None
        self._persist_failed = False

    @property
    def last_result(self) -> AcquisitionResult | None:
        """Result of the most recent refresh in this process, if any."""
        return self._last_result

    @property
    def refresh_in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def initialize(self) -> int:
        """Seed synthetic history on first run. Returns entries written."""
        return await self._history.seed_if_empty()

    async def acquire_and_persist(self) -> AcquisitionResult:
        """Refresh rates, or join the refresh that is already running."""
        if self._inflight is not None and not self._inflight.done():
            logger.info("refresh_coalesced")
            return await asyncio.shield(self._inflight)

        task = asyncio.create_task(self._refresh())
        self._inflight = task
        task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task[AcquisitionResult]) -> None:
        if self._inflight is task:
            self._inflight = None

    async def wait_idle(self) -> None:
        """Wait for an in-flight refresh to finish (used before shutdown)."""
        task = self._inflight
        if task is None or task.done():
            return
        logger.info("waiting_for_inflight_refresh")
        try:
            await task
        except Exception:
            logger.warning("inflight_refresh_failed", exc_info=True)

    async def _refresh(self) -> AcquisitionResult:
        result = await self._chain.acquire()
        try:
            await self._history.upsert(result.record)
            await self._history.set_last_update(self._clock.now_ms())
        except Exception as e:
            # The acquired record is still served; the next cycle retries the write.
            logger.error(
                "refresh_persist_failed",
                error=str(e),
                error_type=type(e).__name__,
                source=result.record.source,
            )
            self._persist_failed = True
        else:
            self._persist_failed = False
        self._last_result = result

        logger.info(
            "refresh_completed",
            source=result.record.source,
            used_fallback=result.used_fallback,
            gold_24k=result.record.gold_24k_per_gram,
            gold_22k=result.record.gold_22k_per_gram,
            silver=result.record.silver_per_gram,
        )
        return result

    async def current(self) -> RateRecord | None:
        """Latest known rates: this process's last refresh, else the newest stored day."""
        if self._last_result is not None:
            return self._last_result.record
        latest = await self._history.latest()
        return latest.to_record(SOURCE_STORED) if latest is not None else None

    def notice(self) -> str | None:
        """Informational message when the last refresh used fallback data
        or could not be saved."""
        if self._persist_failed:
            return PERSIST_FAILED_NOTICE
        if self._last_result is not None and self._last_result.used_fallback:
            return FALLBACK_NOTICE
        return None

    async def get_history(self) -> list[HistoryEntry]:
        return await self._history.all()

    async def get_change(self) -> ChangeResult | InsufficientData:
        return change_from_history(await self._history.all())

    async def last_update(self) -> int | None:
        return await self._history.get_last_update()
