from __future__ import annotations

from dataclasses import dataclass
from datetime import time


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open [start, end) overlap test; touching boundaries do not overlap."""
    return start_a < end_b and end_a > start_b


def parse_hhmm(value: str) -> time:
    parts = str(value or '').strip().split(':')
    if len(parts) not in (2, 3):
        raise ValueError('Invalid HH:MM time')
    try:
        hour, minute = int(parts[0]), int(parts[1])
        second = int(parts[2]) if len(parts) == 3 else 0
    except ValueError as exc:
        raise ValueError('Invalid HH:MM time') from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        raise ValueError('Invalid HH:MM time')
    return time(hour=hour, minute=minute, second=second)


@dataclass(frozen=True)
class TimeRange:
    start: time
    end: time

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def overlaps(self, other: 'TimeRange') -> bool:
        if self.is_empty or other.is_empty:
            return False
        return overlaps(self.start, self.end, other.start, other.end)

    def label(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"
