"""Recent user actions, newest first, for display.

Fixed-capacity ring buffer: once full, recording a new action evicts the
oldest one.  In memory only and reset on restart.  Not an audit trail.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from datetime import datetime

ACTIVITY_LOG_CAPACITY = 10


class ActivityLog:
    def __init__(
        self,
        capacity: int = ACTIVITY_LOG_CAPACITY,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._entries: deque[str] = deque(maxlen=capacity)
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def record(self, action: str) -> str:
        entry = f"{self._clock().strftime('%H:%M:%S')}: {action}"
        # appendleft on a bounded deque drops from the right (the oldest).
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
