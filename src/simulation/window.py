"""
Sliding time window counter.

Counts how many timestamps fall within the last ``window_size`` seconds
of a query time. Timestamps must be added, and queries made, in
non-decreasing time order: eviction is permanent.
"""

from __future__ import annotations

from collections import deque


class Window:
    """Count of recent events over a fixed trailing time window."""

    def __init__(self, window_size: float):
        self.window_size = window_size
        self.times: deque[float] = deque()

    def add(self, time: float) -> int:
        """Record an event at ``time`` and return the count at that time."""
        self.times.append(time)
        return self.count(time)

    def count(self, end: float) -> int:
        """Count events with ``end - t <= window_size`` without adding one."""
        while self.times and end - self.times[0] > self.window_size:
            self.times.popleft()
        return len(self.times)

    def __len__(self) -> int:
        return len(self.times)
