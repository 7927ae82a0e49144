"""Shared test fixtures for the metal rate tracker."""

from datetime import timezone

import pytest
import pytest_asyncio

from metaltracker.clock import FixedClock
from metaltracker.config import AppSettings, HistorySettings, ProviderSettings
from metaltracker.history.database import KeyValueDatabase
from metaltracker.history.store import HistoryStore
from metaltracker.models import RateRecord

#: 2024-01-02 12:00:00 UTC
NOW_MS = 1_704_196_800_000


def _make_record(
    gold_24k: int = 6850,
    gold_22k: int = 6275,
    silver: int = 85,
    timestamp_ms: int = NOW_MS,
    source: str = "test",
) -> RateRecord:
    """Build a RateRecord with sensible defaults."""
    return RateRecord(
        gold_24k_per_gram=gold_24k,
        gold_22k_per_gram=gold_22k,
        silver_per_gram=silver,
        timestamp_ms=timestamp_ms,
        source=source,
    )


@pytest.fixture
def make_record():
    """Factory for RateRecord instances."""
    return _make_record


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings with test defaults (dummy API keys, temp database)."""
    return AppSettings(
        log_level="DEBUG",
        providers=ProviderSettings(
            metalprice_api_key="test-metalprice-key",  # type: ignore[arg-type]
            metalsdev_api_key="test-metalsdev-key",  # type: ignore[arg-type]
        ),
        history=HistorySettings(
            db_path=str(tmp_path / "rates.db"),
            timezone="UTC",
        ),
    )


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2024-01-02 12:00 UTC."""
    return FixedClock(NOW_MS)


@pytest_asyncio.fixture
async def kv(tmp_path):
    """Connected KeyValueDatabase in a temporary directory."""
    async with KeyValueDatabase(str(tmp_path / "data" / "rates.db")) as database:
        yield database


@pytest.fixture
def history(kv: KeyValueDatabase, clock: FixedClock) -> HistoryStore:
    """HistoryStore keyed by UTC calendar days."""
    return HistoryStore(kv, tz=timezone.utc, clock=clock)
