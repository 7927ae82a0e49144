"""Provider fallback chain.

Tries each configured provider in priority order, awaiting one before the
next begins, and returns the first live record. When every provider is
unavailable it falls back to the latest stored history entry, or to fixed
approximate prices when there is no history at all. acquire() never raises.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from metaltracker.clock import Clock, SystemClock
from metaltracker.logging import get_logger
from metaltracker.models import (
    BASELINE_GOLD_22K,
    BASELINE_GOLD_24K,
    BASELINE_SILVER,
    SOURCE_FALLBACK_CACHE,
    SOURCE_FALLBACK_DEFAULT,
    AcquisitionResult,
    RateRecord,
    Unavailable,
)

if TYPE_CHECKING:
    from metaltracker.history.store import HistoryStore
    from metaltracker.providers.base import RateProvider

logger = get_logger(__name__)


def default_record(timestamp_ms: int) -> RateRecord:
    """Approximate prices used when no provider and no history is available."""
    return RateRecord(
        gold_24k_per_gram=BASELINE_GOLD_24K,
        gold_22k_per_gram=BASELINE_GOLD_22K,
        silver_per_gram=BASELINE_SILVER,
        timestamp_ms=timestamp_ms,
        source=SOURCE_FALLBACK_DEFAULT,
    )


class FallbackChain:
    """Ordered list of providers with cache and default fallbacks.

    Args:
        providers: Providers in priority order (first is tried first).
        history: Store whose latest entry serves as the cached fallback.
        clock: Time source for the default record.
    """

    def __init__(
        self,
        providers: Sequence["RateProvider"],
        history: "HistoryStore",
        clock: Clock | None = None,
    ) -> None:
        self._providers = list(providers)
        self._history = history
        self._clock = clock or SystemClock()

    @property
    def providers(self) -> list["RateProvider"]:
        return list(self._providers)

    async def acquire(self) -> AcquisitionResult:
        """Return the first live record, or a fallback record."""
        failures: list[Unavailable] = []

        for provider in self._providers:
            result = await provider.fetch()
            if isinstance(result, RateRecord):
                return AcquisitionResult(record=result, used_fallback=False)
            failures.append(result)

        record = await self._fallback_record()
        logger.warning(
            "all_providers_unavailable",
            failures={f.source: f.error_type for f in failures},
            fallback=record.source,
        )
        return AcquisitionResult(record=record, used_fallback=True)

    async def _fallback_record(self) -> RateRecord:
        try:
            latest = await self._history.latest()
        except Exception:
            logger.warning("fallback_history_read_failed", exc_info=True)
            latest = None
        if latest is not None:
            return latest.to_record(SOURCE_FALLBACK_CACHE)
        return default_record(self._clock.now_ms())
