"""Fixed-capacity, key-unique ordered log.

Items keep insertion order, or key order when the log is built with
ordered=True. Upserting an item whose key is already present replaces it in
place; a new key is appended, or inserted at its key position. Whenever the
log grows past its capacity the oldest items are evicted from the front.
"""

from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class CappedLog(Generic[K, V]):
    """Ordered container with per-key replacement and oldest-first eviction.

    Args:
        capacity: Maximum number of items kept (must be positive).
        key: Function extracting the unique key of an item.
        items: Initial items, oldest first. Later duplicates replace earlier
            ones in place and the capacity is enforced.
        ordered: Keep items sorted by key. A new key older than the newest
            item is inserted at its position instead of appended.
    """

    def __init__(
        self,
        capacity: int,
        key: Callable[[V], K],
        items: Iterable[V] = (),
        ordered: bool = False,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._key = key
        self._ordered = ordered
        self._items: list[V] = []
        for item in items:
            self.upsert(item)

    @property
    def capacity(self) -> int:
        return self._capacity

    def upsert(self, item: V) -> bool:
        """Insert or replace an item.

        Returns:
            True if an existing item with the same key was replaced,
            False if the item was added as a new key.
        """
        item_key = self._key(item)
        for index, existing in enumerate(self._items):
            if self._key(existing) == item_key:
                self._items[index] = item
                return True

        self._items.insert(self._insert_index(item_key), item)
        overflow = len(self._items) - self._capacity
        if overflow > 0:
            del self._items[:overflow]
        return False

    def _insert_index(self, item_key: K) -> int:
        if self._ordered:
            for index, existing in enumerate(self._items):
                if item_key < self._key(existing):  # type: ignore[operator]
                    return index
        return len(self._items)

    def get(self, key: K) -> V | None:
        for item in self._items:
            if self._key(item) == key:
                return item
        return None

    def latest(self) -> V | None:
        return self._items[-1] if self._items else None

    def to_list(self) -> list[V]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[V]:
        return iter(list(self._items))

    def __contains__(self, key: object) -> bool:
        return any(self._key(item) == key for item in self._items)
