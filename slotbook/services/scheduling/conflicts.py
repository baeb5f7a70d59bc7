# slotbook/services/scheduling/conflicts.py
"""Half-open interval overlap checks"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """
    True when [a_start, a_end) and [b_start, b_end) share any instant.

    Touching endpoints (a_end == b_start) do not overlap.
    """
    for value in (a_start, a_end, b_start, b_end):
        if value.tzinfo is None:
            raise ValueError("overlaps() requires timezone-aware datetimes")
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class TimeInterval:
    """An occupied or candidate [start, end) span"""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Interval ends before it starts: {self.start} > {self.end}")

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)


def find_conflicts(candidate: TimeInterval, existing: Iterable[TimeInterval]) -> List[TimeInterval]:
    """Return every existing interval the candidate collides with"""
    return [interval for interval in existing if candidate.overlaps(interval)]


def has_conflict(candidate: TimeInterval, existing: Iterable[TimeInterval]) -> bool:
    return any(candidate.overlaps(interval) for interval in existing)
