from collections import deque
from typing import Deque, List, Optional

from analytics.models import WindowEntry

DEFAULT_CAPACITY = 30


class SlidingWindow:
    """Fixed-capacity history of window entries, oldest first.

    Pushing past capacity evicts the head. Entries are kept in arrival order
    and never re-sorted.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"window capacity must be at least 1, got {capacity}")
        self._entries: Deque[WindowEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen  # type: ignore[return-value]

    def push(self, entry: WindowEntry) -> None:
        self._entries.append(entry)

    def snapshot(self) -> List[WindowEntry]:
        """Return an independent copy of the entries in arrival order."""
        return list(self._entries)

    def latest(self) -> Optional[WindowEntry]:
        if not self._entries:
            return None
        return self._entries[-1]

    def __len__(self) -> int:
        return len(self._entries)
