"""Rolling daily price history on top of the key-value store.

HistoryStore keeps at most one entry per calendar day, oldest first, capped
at a fixed number of days. The whole log is serialized as one JSON array
under the "history" key, so every upsert replaces it atomically.

Persisted format (one element per day)::

    {"date": "2024-01-02", "gold24k": 6850, "gold22k": 6275,
     "silver": 85, "timestamp": 1704153600000}
"""

import json
import random
from collections.abc import Callable
from datetime import date, timedelta, tzinfo
from decimal import Decimal
from typing import Any

from metaltracker.clock import MS_PER_DAY, Clock, SystemClock, calendar_day
from metaltracker.exceptions import StoreCorrupt
from metaltracker.history.capped_log import CappedLog
from metaltracker.history.database import KeyValueDatabase
from metaltracker.logging import get_logger
from metaltracker.models import BASELINE_GOLD_24K, BASELINE_SILVER, HistoryEntry, RateRecord
from metaltracker.rates.units import derive_purity_variant, round_price

logger = get_logger(__name__)

HISTORY_KEY = "history"
LAST_UPDATE_KEY = "last_update"

DEFAULT_CAPACITY = 30
DEFAULT_SEED_DAYS = 7

#: Seed jitter: gold +/-50 and silver +/-2.5 around the baseline.
_SEED_GOLD_SPREAD = Decimal("100")
_SEED_SILVER_SPREAD = Decimal("5")

DayFunction = Callable[[int, tzinfo], date]


# ──────────────────────────────────────────────
# Codec
# ──────────────────────────────────────────────


def _entry_to_dict(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "date": entry.date.isoformat(),
        "gold24k": entry.gold_24k_per_gram,
        "gold22k": entry.gold_22k_per_gram,
        "silver": entry.silver_per_gram,
        "timestamp": entry.timestamp_ms,
    }


def _require_int(item: dict[str, Any], field: str) -> int:
    value = item.get(field)
    if isinstance(value, bool) or not isinstance(value, int):
        raise StoreCorrupt(f"history field '{field}' is not an integer: {value!r}")
    return value


def _entry_from_dict(item: Any) -> HistoryEntry:
    if not isinstance(item, dict):
        raise StoreCorrupt(f"history element is not an object: {item!r}")
    try:
        day = date.fromisoformat(item.get("date"))
    except (TypeError, ValueError) as e:
        raise StoreCorrupt(f"history date is invalid: {item.get('date')!r}") from e
    return HistoryEntry(
        date=day,
        gold_24k_per_gram=_require_int(item, "gold24k"),
        gold_22k_per_gram=_require_int(item, "gold22k"),
        silver_per_gram=_require_int(item, "silver"),
        timestamp_ms=_require_int(item, "timestamp"),
    )


def encode_history(entries: list[HistoryEntry]) -> str:
    """Serialize history entries to the persisted JSON array."""
    return json.dumps([_entry_to_dict(e) for e in entries])


def decode_history(raw: str) -> list[HistoryEntry]:
    """Parse the persisted JSON array back into history entries.

    Raises:
        StoreCorrupt: If the text is not a JSON array of valid entries.
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise StoreCorrupt("history is not valid JSON") from e
    if not isinstance(data, list):
        raise StoreCorrupt(f"history is not a JSON array: {type(data).__name__}")
    return [_entry_from_dict(item) for item in data]


# ──────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────


class HistoryStore:
    """Capped, date-keyed daily price log persisted in a KeyValueDatabase.

    Args:
        kv: Connected key-value database.
        tz: Timezone defining calendar-day boundaries.
        capacity: Maximum number of days kept.
        seed_days: Days of synthetic history written by seed_if_empty().
        clock: Time source for seeding.
        day_of: Calendar-day derivation, (timestamp_ms, tz) -> date.
    """

    def __init__(
        self,
        kv: KeyValueDatabase,
        tz: tzinfo,
        capacity: int = DEFAULT_CAPACITY,
        seed_days: int = DEFAULT_SEED_DAYS,
        clock: Clock | None = None,
        day_of: DayFunction = calendar_day,
    ) -> None:
        self._kv = kv
        self._tz = tz
        self._capacity = capacity
        self._seed_days = seed_days
        self._clock = clock or SystemClock()
        self._day_of = day_of

    @property
    def capacity(self) -> int:
        return self._capacity

    def day_of(self, timestamp_ms: int) -> date:
        """Calendar day a timestamp falls on in the store's timezone."""
        return self._day_of(timestamp_ms, self._tz)

    async def all(self) -> list[HistoryEntry]:
        """Return the persisted history, oldest first.

        Missing or corrupt data reads as an empty history.
        """
        raw = await self._kv.get(HISTORY_KEY)
        if raw is None:
            return []
        try:
            return decode_history(raw)
        except StoreCorrupt as e:
            logger.warning("history_store_corrupt", error=str(e))
            return []

    async def latest(self) -> HistoryEntry | None:
        entries = await self.all()
        return entries[-1] if entries else None

    async def upsert(self, record: RateRecord) -> HistoryEntry:
        """Insert or replace the entry for the record's calendar day.

        An existing entry for the same day keeps its position; a new day is
        placed in ascending date order. The log is trimmed to capacity
        (oldest first) and persisted in one write.
        """
        entry = HistoryEntry.from_record(record, self.day_of(record.timestamp_ms))

        log: CappedLog[date, HistoryEntry] = CappedLog(
            self._capacity, key=lambda e: e.date, items=await self.all(), ordered=True
        )
        replaced = log.upsert(entry)
        await self._save(log.to_list())

        logger.info(
            "history_upserted",
            date=entry.date.isoformat(),
            source=record.source,
            replaced=replaced,
            length=len(log),
        )
        return entry

    async def seed_if_empty(self, rng: random.Random | None = None) -> int:
        """Write synthetic entries for the days ending today if history is empty.

        Never touches existing data.

        Returns:
            Number of entries written (0 when history already exists).
        """
        if await self.all():
            return 0

        rng = rng or random.Random()
        now_ms = self._clock.now_ms()
        today = self.day_of(now_ms)
        log: CappedLog[date, HistoryEntry] = CappedLog(
            self._capacity, key=lambda e: e.date, ordered=True
        )

        # One entry per calendar day, independent of DST transitions.
        for days_ago in range(self._seed_days - 1, -1, -1):
            timestamp_ms = now_ms - days_ago * MS_PER_DAY
            gold = round_price(Decimal(BASELINE_GOLD_24K) + _jitter(rng, _SEED_GOLD_SPREAD))
            silver = round_price(Decimal(BASELINE_SILVER) + _jitter(rng, _SEED_SILVER_SPREAD))
            log.upsert(
                HistoryEntry(
                    date=today - timedelta(days=days_ago),
                    gold_24k_per_gram=gold,
                    gold_22k_per_gram=derive_purity_variant(gold),
                    silver_per_gram=silver,
                    timestamp_ms=timestamp_ms,
                )
            )

        await self._save(log.to_list())
        logger.info("history_seeded", entries=len(log))
        return len(log)

    async def get_last_update(self) -> int | None:
        """Return the last-update marker in Unix milliseconds, if readable."""
        raw = await self._kv.get(LAST_UPDATE_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("last_update_marker_corrupt", raw=raw)
            return None

    async def set_last_update(self, timestamp_ms: int) -> None:
        await self._kv.set(LAST_UPDATE_KEY, str(timestamp_ms))

    async def _save(self, entries: list[HistoryEntry]) -> None:
        await self._kv.set(HISTORY_KEY, encode_history(entries))


def _jitter(rng: random.Random, spread: Decimal) -> Decimal:
    """Uniform offset in [-spread/2, spread/2)."""
    return (Decimal(str(rng.random())) - Decimal("0.5")) * spread
