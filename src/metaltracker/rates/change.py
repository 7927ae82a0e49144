"""Day-over-day change computation for tracked prices.

Compares the two most recent prices and reports the absolute delta, the
percentage delta (two decimal places) and a direction per field.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from metaltracker.exceptions import InsufficientHistory
from metaltracker.models import (
    ChangeDirection,
    ChangeResult,
    FieldChange,
    HistoryEntry,
    InsufficientData,
    RateRecord,
)

_PERCENT_PLACES = Decimal("0.01")


def compute_field_change(current: int, previous: int) -> FieldChange:
    """Compute the change of a single price.

    The percentage is omitted (None) when previous is zero.
    """
    absolute = current - previous

    if previous == 0:
        percent = None
    else:
        percent = (Decimal(absolute) / Decimal(previous) * 100).quantize(
            _PERCENT_PLACES, rounding=ROUND_HALF_UP
        )

    if absolute > 0:
        direction = ChangeDirection.UP
    elif absolute < 0:
        direction = ChangeDirection.DOWN
    else:
        direction = ChangeDirection.UNCHANGED

    return FieldChange(absolute=absolute, percent=percent, direction=direction)


def compute_change(
    current: RateRecord | HistoryEntry,
    previous: RateRecord | HistoryEntry,
) -> ChangeResult:
    """Compute per-field changes between two sets of prices."""
    return ChangeResult(
        gold24k=compute_field_change(current.gold_24k_per_gram, previous.gold_24k_per_gram),
        gold22k=compute_field_change(current.gold_22k_per_gram, previous.gold_22k_per_gram),
        silver=compute_field_change(current.silver_per_gram, previous.silver_per_gram),
    )


def change_from_history(entries: Sequence[HistoryEntry]) -> ChangeResult | InsufficientData:
    """Compare the latest history entry against the one before it.

    A history with fewer than two entries is a normal state for a new
    install and yields InsufficientData rather than an error.
    """
    if len(entries) < 2:
        return InsufficientData(available=len(entries))
    return compute_change(entries[-1], entries[-2])


def require_change(entries: Sequence[HistoryEntry]) -> ChangeResult:
    """Like change_from_history(), but raise when history is too short.

    Raises:
        InsufficientHistory: If fewer than two entries are available.
    """
    result = change_from_history(entries)
    if isinstance(result, InsufficientData):
        raise InsufficientHistory(
            f"need at least 2 history entries, have {result.available}"
        )
    return result
