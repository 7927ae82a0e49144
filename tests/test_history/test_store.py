"""Tests for the date-keyed history store.

Uses a real temporary SQLite database and UTC calendar days.
"""

import json
import random
from datetime import date, timedelta, timezone

import pytest

from metaltracker.clock import MS_PER_DAY, FixedClock, load_timezone
from metaltracker.exceptions import StoreCorrupt
from metaltracker.history.database import KeyValueDatabase
from metaltracker.history.store import (
    HISTORY_KEY,
    LAST_UPDATE_KEY,
    HistoryStore,
    decode_history,
    encode_history,
)
from metaltracker.models import HistoryEntry
from metaltracker.rates.units import derive_purity_variant

# 2024-01-02 12:00:00 UTC
NOW_MS = 1_704_196_800_000


class TestUpsert:
    @pytest.mark.asyncio
    async def test_first_upsert_appends(self, history: HistoryStore, make_record) -> None:
        entry = await history.upsert(make_record())

        assert entry.date == date(2024, 1, 2)
        assert await history.all() == [entry]

    @pytest.mark.asyncio
    async def test_same_day_replaces(self, history: HistoryStore, make_record) -> None:
        await history.upsert(make_record(gold_24k=6800, timestamp_ms=NOW_MS))
        await history.upsert(make_record(gold_24k=6900, timestamp_ms=NOW_MS + 3_600_000))

        entries = await history.all()
        assert len(entries) == 1
        assert entries[0].gold_24k_per_gram == 6900
        assert entries[0].timestamp_ms == NOW_MS + 3_600_000

    @pytest.mark.asyncio
    async def test_replacement_keeps_position(self, history: HistoryStore, make_record) -> None:
        for offset in (-2, -1, 0):
            await history.upsert(make_record(timestamp_ms=NOW_MS + offset * MS_PER_DAY))
        await history.upsert(make_record(gold_24k=7100, timestamp_ms=NOW_MS - MS_PER_DAY + 1000))

        entries = await history.all()
        assert [e.date.day for e in entries] == [31, 1, 2]
        assert entries[1].gold_24k_per_gram == 7100

    @pytest.mark.asyncio
    async def test_back_dated_day_keeps_ascending_order(
        self, history: HistoryStore, make_record
    ) -> None:
        await history.upsert(make_record(timestamp_ms=NOW_MS - 2 * MS_PER_DAY))
        await history.upsert(make_record(timestamp_ms=NOW_MS))
        await history.upsert(make_record(gold_24k=7000, timestamp_ms=NOW_MS - MS_PER_DAY))

        entries = await history.all()
        assert [e.date for e in entries] == [date(2023, 12, 31), date(2024, 1, 1), date(2024, 1, 2)]
        assert entries[1].gold_24k_per_gram == 7000
        assert (await history.latest()).date == date(2024, 1, 2)

    @pytest.mark.asyncio
    async def test_capped_at_thirty_days(self, history: HistoryStore, make_record) -> None:
        for day in range(35):
            await history.upsert(make_record(gold_24k=6000 + day, timestamp_ms=NOW_MS + day * MS_PER_DAY))
            assert len(await history.all()) <= 30

        entries = await history.all()
        assert len(entries) == 30
        assert entries[0].gold_24k_per_gram == 6005
        assert entries[-1].gold_24k_per_gram == 6034
        assert entries[0].date == date(2024, 1, 2) + timedelta(days=5)

    @pytest.mark.asyncio
    async def test_custom_capacity(self, kv: KeyValueDatabase, clock, make_record) -> None:
        store = HistoryStore(kv, tz=timezone.utc, capacity=2, clock=clock)
        for day in range(3):
            await store.upsert(make_record(timestamp_ms=NOW_MS + day * MS_PER_DAY))
        assert [e.date.day for e in await store.all()] == [3, 4]

    @pytest.mark.asyncio
    async def test_day_boundary_follows_timezone(self, kv: KeyValueDatabase, make_record) -> None:
        """20:00 UTC on Jan 2 is already Jan 3 in India (UTC+05:30)."""
        store = HistoryStore(kv, tz=load_timezone("Asia/Kolkata"))
        entry = await store.upsert(make_record(timestamp_ms=NOW_MS + 8 * 3_600_000))
        assert entry.date == date(2024, 1, 3)

    @pytest.mark.asyncio
    async def test_injected_day_function(self, kv: KeyValueDatabase, make_record) -> None:
        store = HistoryStore(kv, tz=timezone.utc, day_of=lambda ts, tz: date(2000, 1, 1))
        entry = await store.upsert(make_record())
        assert entry.date == date(2000, 1, 1)


class TestReadAndCorruption:
    @pytest.mark.asyncio
    async def test_empty_when_nothing_stored(self, history: HistoryStore) -> None:
        assert await history.all() == []
        assert await history.latest() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            '{"date": "2024-01-01"}',
            '[{"date": "yesterday", "gold24k": 1, "gold22k": 1, "silver": 1, "timestamp": 1}]',
            '[{"date": "2024-01-01", "gold24k": "6850", "gold22k": 1, "silver": 1, "timestamp": 1}]',
            '[{"date": "2024-01-01", "gold22k": 1, "silver": 1, "timestamp": 1}]',
            "[42]",
        ],
    )
    async def test_corrupt_history_reads_as_empty(
        self, history: HistoryStore, kv: KeyValueDatabase, raw: str
    ) -> None:
        await kv.set(HISTORY_KEY, raw)
        assert await history.all() == []

    @pytest.mark.asyncio
    async def test_upsert_over_corrupt_history_recovers(
        self, history: HistoryStore, kv: KeyValueDatabase, make_record
    ) -> None:
        await kv.set(HISTORY_KEY, "garbage")
        await history.upsert(make_record())
        assert len(await history.all()) == 1

    @pytest.mark.asyncio
    async def test_persisted_format(
        self, history: HistoryStore, kv: KeyValueDatabase, make_record
    ) -> None:
        await history.upsert(make_record(gold_24k=6850, gold_22k=6275, silver=85))
        stored = json.loads(await kv.get(HISTORY_KEY))
        assert stored == [
            {
                "date": "2024-01-02",
                "gold24k": 6850,
                "gold22k": 6275,
                "silver": 85,
                "timestamp": NOW_MS,
            }
        ]


class TestCodec:
    def test_round_trip_preserves_entries(self) -> None:
        entries = [
            HistoryEntry(date(2024, 1, 1), 6800, 6229, 84, NOW_MS - MS_PER_DAY),
            HistoryEntry(date(2024, 1, 2), 6850, 6275, 85, NOW_MS),
        ]
        assert decode_history(encode_history(entries)) == entries

    def test_round_trip_empty(self) -> None:
        assert decode_history(encode_history([])) == []

    def test_bool_is_not_an_integer(self) -> None:
        raw = '[{"date": "2024-01-01", "gold24k": true, "gold22k": 1, "silver": 1, "timestamp": 1}]'
        with pytest.raises(StoreCorrupt):
            decode_history(raw)


class TestSeed:
    @pytest.mark.asyncio
    async def test_seeds_seven_days_ending_today(self, history: HistoryStore) -> None:
        written = await history.seed_if_empty(rng=random.Random(42))

        entries = await history.all()
        assert written == 7
        assert [e.date for e in entries] == [
            date(2024, 1, 2) - timedelta(days=n) for n in range(6, -1, -1)
        ]
        assert entries[-1].timestamp_ms == NOW_MS

    @pytest.mark.asyncio
    async def test_seed_steps_by_calendar_day(self, kv: KeyValueDatabase, clock) -> None:
        """Consecutive days even when 24h offsets would not change the day."""
        store = HistoryStore(
            kv, tz=timezone.utc, clock=clock, day_of=lambda ts, tz: date(2024, 3, 10)
        )

        assert await store.seed_if_empty(rng=random.Random(3)) == 7
        assert [e.date for e in await store.all()] == [
            date(2024, 3, 10) - timedelta(days=n) for n in range(6, -1, -1)
        ]

    @pytest.mark.asyncio
    async def test_seed_across_dst_change(self, kv: KeyValueDatabase) -> None:
        # Santiago moved its clocks back at midnight on 2024-04-07.
        clock = FixedClock(1_712_664_000_000)  # 2024-04-09 12:00 UTC
        store = HistoryStore(kv, tz=load_timezone("America/Santiago"), clock=clock)

        await store.seed_if_empty(rng=random.Random(5))

        dates = [e.date for e in await store.all()]
        assert dates == [date(2024, 4, 9) - timedelta(days=n) for n in range(6, -1, -1)]

    @pytest.mark.asyncio
    async def test_seed_values_jitter_around_baseline(self, history: HistoryStore) -> None:
        await history.seed_if_empty(rng=random.Random(7))

        for entry in await history.all():
            assert 6800 <= entry.gold_24k_per_gram <= 6900
            assert 82 <= entry.silver_per_gram <= 88
            assert entry.gold_22k_per_gram == derive_purity_variant(entry.gold_24k_per_gram)
            assert entry.gold_22k_per_gram <= entry.gold_24k_per_gram

    @pytest.mark.asyncio
    async def test_seed_never_overwrites(self, history: HistoryStore, make_record) -> None:
        await history.upsert(make_record(gold_24k=7000))

        assert await history.seed_if_empty() == 0
        entries = await history.all()
        assert len(entries) == 1
        assert entries[0].gold_24k_per_gram == 7000

    @pytest.mark.asyncio
    async def test_seed_is_deterministic_with_rng(self, kv: KeyValueDatabase) -> None:
        clock = FixedClock(NOW_MS)
        store = HistoryStore(kv, tz=timezone.utc, clock=clock)
        await store.seed_if_empty(rng=random.Random(1))
        first = await store.all()

        await kv.delete(HISTORY_KEY)
        await store.seed_if_empty(rng=random.Random(1))
        assert await store.all() == first


class TestLastUpdateMarker:
    @pytest.mark.asyncio
    async def test_missing_marker(self, history: HistoryStore) -> None:
        assert await history.get_last_update() is None

    @pytest.mark.asyncio
    async def test_marker_stored_as_string(self, history: HistoryStore, kv: KeyValueDatabase) -> None:
        await history.set_last_update(NOW_MS)
        assert await kv.get(LAST_UPDATE_KEY) == str(NOW_MS)
        assert await history.get_last_update() == NOW_MS

    @pytest.mark.asyncio
    async def test_corrupt_marker_reads_as_missing(
        self, history: HistoryStore, kv: KeyValueDatabase
    ) -> None:
        await kv.set(LAST_UPDATE_KEY, "not-a-number")
        assert await history.get_last_update() is None
