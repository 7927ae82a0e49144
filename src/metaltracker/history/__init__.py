"""History persistence layer.

Provides the capped key-unique log container, the aiosqlite key-value
database, and the date-keyed daily price history built on both.
"""

from metaltracker.history.capped_log import CappedLog
from metaltracker.history.database import KeyValueDatabase
from metaltracker.history.store import HistoryStore, decode_history, encode_history

__all__ = [
    "CappedLog",
    "HistoryStore",
    "KeyValueDatabase",
    "decode_history",
    "encode_history",
]
