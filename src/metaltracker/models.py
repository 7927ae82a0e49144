"""Shared data models for the metal rate tracker.

Prices are whole rupees per gram (int). Intermediate conversion math uses
Decimal and is rounded once, in metaltracker.rates.units.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

#: Source tags for records produced without a live provider.
SOURCE_FALLBACK_CACHE = "fallback-cache"
SOURCE_FALLBACK_DEFAULT = "fallback-default"

#: Source tag for a record replayed from history without a refresh.
SOURCE_STORED = "stored"

#: Approximate Chennai prices (INR per gram) used for the default fallback
#: record and as the baseline for synthetic seed history.
BASELINE_GOLD_24K = 6850
BASELINE_GOLD_22K = 6275
BASELINE_SILVER = 85


class ChangeDirection(str, Enum):
    """Day-over-day movement of a tracked price."""

    UP = "up"
    DOWN = "down"
    UNCHANGED = "unchanged"


@dataclass
class RateRecord:
    """Canonical per-gram prices from one acquisition."""

    gold_24k_per_gram: int
    gold_22k_per_gram: int
    silver_per_gram: int
    timestamp_ms: int  # Unix milliseconds of acquisition
    source: str

    @property
    def is_fallback(self) -> bool:
        return self.source in (SOURCE_FALLBACK_CACHE, SOURCE_FALLBACK_DEFAULT)


@dataclass
class HistoryEntry:
    """One calendar day of the rolling price history."""

    date: date
    gold_24k_per_gram: int
    gold_22k_per_gram: int
    silver_per_gram: int
    timestamp_ms: int

    @classmethod
    def from_record(cls, record: RateRecord, day: date) -> "HistoryEntry":
        return cls(
            date=day,
            gold_24k_per_gram=record.gold_24k_per_gram,
            gold_22k_per_gram=record.gold_22k_per_gram,
            silver_per_gram=record.silver_per_gram,
            timestamp_ms=record.timestamp_ms,
        )

    def to_record(self, source: str) -> RateRecord:
        return RateRecord(
            gold_24k_per_gram=self.gold_24k_per_gram,
            gold_22k_per_gram=self.gold_22k_per_gram,
            silver_per_gram=self.silver_per_gram,
            timestamp_ms=self.timestamp_ms,
            source=source,
        )


@dataclass
class Unavailable:
    """A provider could not produce a rate record.

    error_type names the exception class from metaltracker.exceptions
    (CredentialMissing, TransportFailure, SchemaInvalid) or the unexpected
    exception that was absorbed.
    """

    source: str
    reason: str
    error_type: str


@dataclass
class AcquisitionResult:
    """Outcome of one pass through the provider fallback chain."""

    record: RateRecord
    used_fallback: bool


@dataclass
class FieldChange:
    """Change of a single tracked price between two days."""

    absolute: int
    percent: Decimal | None  # None when the previous price is zero
    direction: ChangeDirection


@dataclass
class ChangeResult:
    """Per-field changes between the two most recent prices."""

    gold24k: FieldChange
    gold22k: FieldChange
    silver: FieldChange


@dataclass
class InsufficientData:
    """Fewer than two history entries exist, so no change can be computed."""

    available: int
